from __future__ import annotations

from comanda.core.tools.base import NoArguments, ToolContext, ToolDefinition, ToolName, ToolResult

PRODUCTS_LIMIT = 50


class ListProductsTool:
    definition = ToolDefinition(
        name=ToolName.LIST_PRODUCTS,
        description="List all products in the menu with their prices and availability.",
        parameters="{} (No parameters)",
        max_items=PRODUCTS_LIMIT,
    )
    input_model = NoArguments

    async def run(self, args: NoArguments, ctx: ToolContext) -> ToolResult:
        products = await ctx.data_source.list_products(ctx.tenant_id)
        return [
            {
                "name": product.name,
                "price": product.price,
                "stock": product.stock_quantity,
                "available": product.is_available,
                "category": product.category,
            }
            for product in products[:PRODUCTS_LIMIT]
        ]
