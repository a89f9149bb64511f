from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from comanda.core.business.base import BusinessDataError
from comanda.core.business.memory import InMemoryDataSource
from comanda.core.business.supabase import SupabaseDataSource


def test_memory_source_filters_and_copies(data_source) -> None:
    async def scenario():
        orders = await data_source.list_orders(
            "biz-1",
            start=datetime(2024, 5, 13, 5, tzinfo=timezone.utc),
            exclude_statuses=("cancelado",),
            limit=2,
        )
        orders[0].total = 0
        again = await data_source.list_orders("biz-1", limit=1)
        return orders, again

    orders, again = asyncio.run(scenario())

    assert [order.id for order in orders] == ["ord-0002-bbbb", "ord-0001-aaaa"]
    assert again[0].total == 18000


def test_memory_source_tenant_lookup(data_source) -> None:
    assert asyncio.run(data_source.get_tenant_id("user-1")) == "biz-1"
    assert asyncio.run(data_source.get_tenant_id("stranger")) is None


def test_memory_source_from_file(tmp_path) -> None:
    fixture = tmp_path / "business.json"
    fixture.write_text(json.dumps({"tenants": {"u": "t"}, "businesses": {"t": {"products": [{"id": "p", "name": "Té"}]}}}), encoding="utf-8")

    source = InMemoryDataSource.from_file(fixture)

    assert asyncio.run(source.get_tenant_id("u")) == "t"
    assert [product.name for product in asyncio.run(source.list_products("t"))] == ["Té"]
    assert asyncio.run(source.list_orders("t")) == []


def test_memory_source_from_bad_file_raises(tmp_path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(BusinessDataError):
        InMemoryDataSource.from_file(broken)
    with pytest.raises(BusinessDataError):
        InMemoryDataSource.from_file(tmp_path / "missing.json")


def test_supabase_source_builds_postgrest_queries(monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/businessmans"):
            return httpx.Response(200, json=[{"id": "biz-9"}])
        if request.url.path.endswith("/orders"):
            return httpx.Response(
                200,
                json=[
                    {
                        "id": "abc",
                        "total": 1000,
                        "status": "entregado",
                        "created_at": "2024-05-15T15:00:00",
                        "order_items": None,
                    }
                ],
            )
        return httpx.Response(200, json=[{"id": "p1", "name": "Arepa", "category": {"name": "Comidas"}}])

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = SupabaseDataSource("https://project.supabase.co/", "service-key", client=client)

    async def scenario():
        tenant = await source.get_tenant_id("user-1")
        orders = await source.list_orders(
            tenant,
            start=datetime(2024, 5, 15, tzinfo=timezone.utc),
            statuses=("entregado", "delivered"),
            exclude_statuses=("cancelado",),
            limit=20,
        )
        products = await source.list_products(tenant)
        return tenant, orders, products

    tenant, orders, products = asyncio.run(scenario())

    assert tenant == "biz-9"
    assert orders[0].created_at.tzinfo is not None
    assert orders[0].items == []
    assert products[0].category == "Comidas"

    tenant_request, orders_request, products_request = seen
    assert tenant_request.url.path == "/rest/v1/businessmans"
    assert tenant_request.headers["apikey"] == "service-key"
    assert tenant_request.headers["authorization"] == "Bearer service-key"
    assert orders_request.url.params["businessman_id"] == "eq.biz-9"
    assert orders_request.url.params["limit"] == "20"
    assert orders_request.url.params.get_list("status") == ["in.(entregado,delivered)", "not.in.(cancelado)"]
    assert orders_request.url.params["created_at"].startswith("gte.2024-05-15T00:00:00")
    assert products_request.url.params["deleted_at"] == "is.null"


def test_supabase_source_wraps_http_failures(monkeypatch) -> None:
    monkeypatch.setattr("comanda.core.http.client._sleep_for_retry", _no_sleep)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    source = SupabaseDataSource("https://project.supabase.co", "service-key", client=client)

    with pytest.raises(BusinessDataError):
        asyncio.run(source.list_products("biz-9"))


def test_supabase_source_rejects_unexpected_payload() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"message": "oops"})))
    source = SupabaseDataSource("https://project.supabase.co", "service-key", client=client)

    with pytest.raises(BusinessDataError):
        asyncio.run(source.get_tenant_id("user-1"))


async def _no_sleep(*_: float) -> None:
    return None
