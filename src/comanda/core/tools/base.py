from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, Union

from pydantic import BaseModel, ConfigDict

from comanda.core.business.base import BusinessDataSource

ToolResult = Union[dict[str, Any], list[Any]]


class ToolName(str, Enum):
    GET_FINANCIAL_STATS = "get_financial_stats"
    GET_RECENT_ORDERS = "get_recent_orders"
    GET_ORDER_HISTORY = "get_order_history"
    LIST_PRODUCTS = "list_products"
    GET_DASHBOARD_OVERVIEW = "get_dashboard_overview"


@dataclass(frozen=True)
class ToolDefinition:
    name: ToolName
    description: str
    parameters: str
    defaults: str = "none"
    max_items: int | None = None

    def render(self) -> str:
        line = f"- {self.name.value}: {self.description} Params: {self.parameters}"
        if self.defaults != "none":
            line += f" Defaults: {self.defaults}."
        if self.max_items is not None:
            line += f" At most {self.max_items} rows per list."
        return line


@dataclass(frozen=True)
class ToolContext:
    tenant_id: str
    data_source: BusinessDataSource
    now: datetime


class NoArguments(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Tool(Protocol):
    definition: ToolDefinition
    input_model: type[BaseModel]

    async def run(self, args: Any, ctx: ToolContext) -> ToolResult: ...


class DispatchError(RuntimeError):
    error_type = "DispatchError"


class UnknownTool(DispatchError):
    error_type = "UnknownTool"


class InvalidToolArguments(DispatchError):
    error_type = "InvalidToolArguments"


class CollaboratorError(DispatchError):
    error_type = "CollaboratorError"


class ToolTimeout(DispatchError):
    error_type = "ToolTimeout"


class ToolOutcome(BaseModel):
    name: str
    ok: bool
    result: Any = None
    error: str | None = None
    error_type: str | None = None
    duration_ms: int = 0

    def payload(self) -> Any:
        """The value handed back to the model as the tool result."""
        if self.ok:
            return self.result
        return {"error": self.error, "error_type": self.error_type}
