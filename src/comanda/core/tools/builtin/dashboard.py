from __future__ import annotations

import asyncio

from comanda.core.business.reporting import CANCELLED_STATUSES, dashboard_stats, range_window, sales_trend, top_products
from comanda.core.tools.base import NoArguments, ToolContext, ToolDefinition, ToolName, ToolResult

from .finance import ORDER_SCAN_LIMIT

TREND_DAYS = 7
TOP_PRODUCTS_LIMIT = 5


class DashboardOverviewTool:
    definition = ToolDefinition(
        name=ToolName.GET_DASHBOARD_OVERVIEW,
        description="Get this month's KPIs (sales, orders, acceptance rate, pending orders), the last 7 days sales trend and the top 5 products.",
        parameters="{} (No parameters)",
        max_items=TOP_PRODUCTS_LIMIT,
    )
    input_model = NoArguments

    async def run(self, args: NoArguments, ctx: ToolContext) -> ToolResult:
        month_start, end = range_window("month", ctx.now)
        trend_start, _ = range_window("last7days", ctx.now)

        month_orders, trend_orders = await asyncio.gather(
            ctx.data_source.list_orders(ctx.tenant_id, start=month_start, end=end, limit=ORDER_SCAN_LIMIT),
            ctx.data_source.list_orders(
                ctx.tenant_id,
                start=trend_start,
                end=end,
                exclude_statuses=CANCELLED_STATUSES,
                limit=ORDER_SCAN_LIMIT,
            ),
        )
        return {
            "stats": dashboard_stats(month_orders, ctx.now),
            "sales_trend": sales_trend(trend_orders, ctx.now, days=TREND_DAYS),
            "top_products": top_products(month_orders, limit=TOP_PRODUCTS_LIMIT),
        }
