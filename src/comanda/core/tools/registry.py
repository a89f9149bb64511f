from __future__ import annotations

from collections.abc import Iterable
from functools import lru_cache
from types import MappingProxyType

from .base import Tool, ToolDefinition, ToolName, UnknownTool


class ToolRegistry:
    """Read-only, ordered catalog of the tools the model may call."""

    def __init__(self, tools: Iterable[Tool]) -> None:
        ordered = tuple(tools)
        table: dict[ToolName, Tool] = {}
        for tool in ordered:
            name = tool.definition.name
            if name in table:
                raise ValueError(f"duplicate tool name: {name.value}")
            table[name] = tool
        self._tools = MappingProxyType(table)
        self._definitions = tuple(tool.definition for tool in ordered)

    def definitions(self) -> tuple[ToolDefinition, ...]:
        return self._definitions

    def names(self) -> list[str]:
        return [definition.name.value for definition in self._definitions]

    def get(self, name: object) -> Tool:
        if not isinstance(name, str):
            raise UnknownTool(f"Tool {name!r} not found.")
        try:
            key = ToolName(name)
        except ValueError:
            raise UnknownTool(f"Tool {name} not found.") from None
        tool = self._tools.get(key)
        if tool is None:
            raise UnknownTool(f"Tool {name} not found.")
        return tool

    def __contains__(self, name: object) -> bool:
        try:
            self.get(name)
        except UnknownTool:
            return False
        return True

    def render(self) -> str:
        return "\n".join(definition.render() for definition in self._definitions)


@lru_cache(maxsize=1)
def default_registry() -> ToolRegistry:
    from .builtin.dashboard import DashboardOverviewTool
    from .builtin.finance import FinancialStatsTool
    from .builtin.orders import OrderHistoryTool, RecentOrdersTool
    from .builtin.products import ListProductsTool

    return ToolRegistry(
        [
            FinancialStatsTool(),
            RecentOrdersTool(),
            OrderHistoryTool(),
            ListProductsTool(),
            DashboardOverviewTool(),
        ]
    )
