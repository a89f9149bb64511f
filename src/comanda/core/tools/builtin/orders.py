from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from comanda.core.business.reporting import HISTORY_STATUS_FILTERS, summarize_order
from comanda.core.tools.base import InvalidToolArguments, NoArguments, ToolContext, ToolDefinition, ToolName, ToolResult

RECENT_ORDERS_LIMIT = 15
HISTORY_LIMIT = 20


class RecentOrdersTool:
    definition = ToolDefinition(
        name=ToolName.GET_RECENT_ORDERS,
        description="Get a list of the most recent orders (live status). Use this to check current activity.",
        parameters="{} (No parameters)",
        max_items=RECENT_ORDERS_LIMIT,
    )
    input_model = NoArguments

    async def run(self, args: NoArguments, ctx: ToolContext) -> ToolResult:
        orders = await ctx.data_source.list_orders(ctx.tenant_id, limit=RECENT_ORDERS_LIMIT)
        return [summarize_order(order) for order in orders[:RECENT_ORDERS_LIMIT]]


class OrderHistoryInput(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    status: Literal["completed", "cancelled", "all"] = "all"

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if value is None:
            return "all"
        if isinstance(value, str):
            return value.strip().casefold()
        return value


class OrderHistoryTool:
    definition = ToolDefinition(
        name=ToolName.GET_ORDER_HISTORY,
        description="Get historical orders filtered by date or status.",
        parameters='{ "startDate"?: "YYYY-MM-DD", "endDate"?: "YYYY-MM-DD", "status"?: "completed" | "cancelled" | "all" }',
        defaults="only startDate covers that whole day; no dates means no date filter; status defaults to all",
        max_items=HISTORY_LIMIT,
    )
    input_model = OrderHistoryInput

    async def run(self, args: OrderHistoryInput, ctx: ToolContext) -> ToolResult:
        tz = ctx.now.tzinfo
        start = datetime.combine(args.start_date, time.min, tzinfo=tz) if args.start_date else None
        last_day = args.end_date or args.start_date
        end = datetime.combine(last_day, time.max, tzinfo=tz) if last_day else None
        if start is not None and end is not None and start > end:
            raise InvalidToolArguments("startDate must not be after endDate.")

        orders = await ctx.data_source.list_orders(
            ctx.tenant_id,
            start=start,
            end=end,
            statuses=HISTORY_STATUS_FILTERS[args.status],
            limit=HISTORY_LIMIT,
        )
        return [summarize_order(order) for order in orders[:HISTORY_LIMIT]]
