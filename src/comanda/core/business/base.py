from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .schemas import Order, Product


class BusinessDataError(RuntimeError):
    """A data-fetch collaborator could not produce its records."""


class BusinessDataSource(Protocol):
    """Tenant-scoped reads over the restaurant's orders and menu."""

    async def get_tenant_id(self, user_id: str) -> str | None: ...

    async def list_orders(
        self,
        tenant_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        statuses: Sequence[str] | None = None,
        exclude_statuses: Sequence[str] | None = None,
        limit: int = 100,
    ) -> list[Order]: ...

    async def list_products(self, tenant_id: str) -> list[Product]: ...
