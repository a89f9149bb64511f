from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from .base import BusinessDataError
from .schemas import Order, Product


class InMemoryDataSource:
    """Fixture-backed data source for local development and tests.

    Fixture shape::

        {"tenants": {"<user_id>": "<tenant_id>"},
         "businesses": {"<tenant_id>": {"orders": [...], "products": [...]}}}
    """

    def __init__(
        self,
        tenants: Mapping[str, str] | None = None,
        orders: Mapping[str, Sequence[Order]] | None = None,
        products: Mapping[str, Sequence[Product]] | None = None,
    ) -> None:
        self._tenants = dict(tenants or {})
        self._orders = {tenant: list(items) for tenant, items in (orders or {}).items()}
        self._products = {tenant: list(items) for tenant, items in (products or {}).items()}

    @classmethod
    def from_fixture(cls, data: Mapping[str, Any]) -> "InMemoryDataSource":
        businesses = data.get("businesses") or {}
        return cls(
            tenants=data.get("tenants") or {},
            orders={
                tenant: [Order.model_validate(raw) for raw in body.get("orders") or []]
                for tenant, body in businesses.items()
            },
            products={
                tenant: [Product.model_validate(raw) for raw in body.get("products") or []]
                for tenant, body in businesses.items()
            },
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryDataSource":
        try:
            data = json.loads(Path(path).expanduser().read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise BusinessDataError(f"could not load data fixture {path}: {exc}") from exc
        return cls.from_fixture(data)

    async def get_tenant_id(self, user_id: str) -> str | None:
        return self._tenants.get(user_id)

    async def list_orders(
        self,
        tenant_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        statuses: Sequence[str] | None = None,
        exclude_statuses: Sequence[str] | None = None,
        limit: int = 100,
    ) -> list[Order]:
        selected = [
            order
            for order in self._orders.get(tenant_id, [])
            if (start is None or order.created_at >= start)
            and (end is None or order.created_at <= end)
            and (statuses is None or order.status in statuses)
            and (exclude_statuses is None or order.status not in exclude_statuses)
        ]
        selected.sort(key=lambda order: order.created_at, reverse=True)
        return [order.model_copy(deep=True) for order in selected[: max(0, limit)]]

    async def list_products(self, tenant_id: str) -> list[Product]:
        return [product.model_copy(deep=True) for product in self._products.get(tenant_id, [])]
