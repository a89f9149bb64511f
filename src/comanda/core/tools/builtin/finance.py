from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from comanda.core.business.reporting import DATE_RANGES, SALE_STATUSES, DateRange, range_window, summarize_financials
from comanda.core.tools.base import ToolContext, ToolDefinition, ToolName, ToolResult

ORDER_SCAN_LIMIT = 5000


class FinancialStatsInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    range: DateRange = "today"

    @field_validator("range", mode="before")
    @classmethod
    def _fallback_to_today(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().casefold() in DATE_RANGES:
            return value.strip().casefold()
        return "today"


class FinancialStatsTool:
    definition = ToolDefinition(
        name=ToolName.GET_FINANCIAL_STATS,
        description="Get financial overview: total sales, order count, average ticket, sales by payment method and over time.",
        parameters='{ "range": "today" | "week" | "month" | "last7days" } (Default: "today")',
        defaults="missing or unrecognized range falls back to today",
        max_items=31,
    )
    input_model = FinancialStatsInput

    async def run(self, args: FinancialStatsInput, ctx: ToolContext) -> ToolResult:
        start, end = range_window(args.range, ctx.now)
        orders = await ctx.data_source.list_orders(
            ctx.tenant_id,
            start=start,
            end=end,
            statuses=SALE_STATUSES,
            limit=ORDER_SCAN_LIMIT,
        )
        return summarize_financials(orders, args.range, start, end, ctx.now.tzinfo)
