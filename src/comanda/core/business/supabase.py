from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from comanda.core.http import ComandaHTTPError, request_with_retry

from .base import BusinessDataError
from .schemas import Order, Product


def _in_list(values: Sequence[str]) -> str:
    return "(" + ",".join(values) + ")"


class SupabaseDataSource:
    """Reads tenant data through Supabase's PostgREST interface.

    All calls are GETs, so transient failures are retried by the shared client.
    """

    def __init__(self, url: str, key: str, client: httpx.AsyncClient | None = None) -> None:
        self.rest_url = url.rstrip("/") + "/rest/v1"
        self._headers = {"apikey": key, "Authorization": f"Bearer {key}", "Accept": "application/json"}
        self._client = client

    async def _select(self, table: str, params: list[tuple[str, str]]) -> list[dict[str, Any]]:
        try:
            response = await request_with_retry(
                "GET",
                f"{self.rest_url}/{table}",
                client=self._client,
                headers=self._headers,
                params=params,
                redact_url=True,
            )
        except ComandaHTTPError as exc:
            raise BusinessDataError(f"{table} query failed: {exc}") from exc

        try:
            rows = response.json()
        except ValueError as exc:
            raise BusinessDataError(f"{table} query returned invalid JSON") from exc
        if not isinstance(rows, list):
            raise BusinessDataError(f"{table} query returned {type(rows).__name__}, expected a list")
        return rows

    async def get_tenant_id(self, user_id: str) -> str | None:
        rows = await self._select("businessmans", [("select", "id"), ("user_id", f"eq.{user_id}"), ("limit", "1")])
        if not rows:
            return None
        tenant_id = rows[0].get("id")
        return str(tenant_id) if tenant_id else None

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
        params: list[tuple[str, str]] = [
            ("select", "*,order_items(*)"),
            ("businessman_id", f"eq.{tenant_id}"),
            ("order", "created_at.desc"),
            ("limit", str(max(0, limit))),
        ]
        if start is not None:
            params.append(("created_at", f"gte.{start.isoformat()}"))
        if end is not None:
            params.append(("created_at", f"lte.{end.isoformat()}"))
        if statuses is not None:
            params.append(("status", f"in.{_in_list(statuses)}"))
        if exclude_statuses:
            params.append(("status", f"not.in.{_in_list(exclude_statuses)}"))

        rows = await self._select("orders", params)
        try:
            return [Order.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise BusinessDataError(f"orders query returned unexpected rows: {exc.error_count()} errors") from exc

    async def list_products(self, tenant_id: str) -> list[Product]:
        rows = await self._select(
            "products",
            [
                ("select", "*,category:categories(name)"),
                ("businessman_id", f"eq.{tenant_id}"),
                ("deleted_at", "is.null"),
                ("order", "created_at.desc"),
            ],
        )
        try:
            return [Product.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise BusinessDataError(f"products query returned unexpected rows: {exc.error_count()} errors") from exc
