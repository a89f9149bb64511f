from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from comanda.core.business.memory import InMemoryDataSource
from comanda.core.gateway.upstream import UpstreamClient

BOGOTA = ZoneInfo("America/Bogota")
# A Wednesday afternoon; the week window starts on Monday 2024-05-13.
FIXED_NOW = datetime(2024, 5, 15, 14, 30, tzinfo=BOGOTA)

BUSINESS_FIXTURE = {
    "tenants": {"user-1": "biz-1", "user-2": "biz-2"},
    "businesses": {
        "biz-1": {
            "orders": [
                {
                    "id": "ord-0001-aaaa",
                    "total": 25000,
                    "status": "entregado",
                    "payment_method": "efectivo",
                    "created_at": "2024-05-15T10:15:00-05:00",
                    "order_items": [
                        {"product_id": "p1", "product_name": "Hamburguesa", "quantity": 2, "unit_price": 10000, "subtotal": 20000},
                        {"product_id": "p2", "product_name": "Limonada", "quantity": 1, "unit_price": 5000, "subtotal": 5000},
                    ],
                },
                {
                    "id": "ord-0002-bbbb",
                    "total": 18000,
                    "status": "delivered",
                    "payment_method": "tarjeta",
                    "created_at": "2024-05-15T12:40:00-05:00",
                    "order_items": [
                        {"product_id": "p1", "product_name": "Hamburguesa", "quantity": 1, "unit_price": 10000, "subtotal": 10000},
                        {"product_id": "p3", "product_name": "Papas", "quantity": 2, "unit_price": 4000, "subtotal": 8000},
                    ],
                },
                {
                    "id": "ord-0003-cccc",
                    "total": 12000,
                    "status": "cancelado",
                    "payment_method": "efectivo",
                    "created_at": "2024-05-14T19:00:00-05:00",
                    "order_items": [
                        {"product_id": "p3", "product_name": "Papas", "quantity": 3, "unit_price": 4000, "subtotal": 12000},
                    ],
                },
                {
                    "id": "ord-0004-dddd",
                    "total": 30000,
                    "status": "pendiente",
                    "payment_method": "nequi",
                    "created_at": "2024-05-13T20:00:00-05:00",
                    "order_items": None,
                },
                {
                    "id": "ord-0005-eeee",
                    "total": 40000,
                    "status": "entregado",
                    "payment_method": "tarjeta",
                    "created_at": "2024-05-02T13:00:00-05:00",
                    "order_items": [
                        {"product_id": "p2", "product_name": "Limonada", "quantity": 8, "unit_price": 5000, "subtotal": 40000},
                    ],
                },
                {
                    "id": "ord-0006-ffff",
                    "total": 9000,
                    "status": "entregado",
                    "payment_method": "efectivo",
                    "created_at": "2024-04-28T12:00:00-05:00",
                    "order_items": [],
                },
            ],
            "products": [
                {"id": "p1", "name": "Hamburguesa", "price": 10000, "stock_quantity": 20, "is_available": True, "category": {"name": "Comidas"}},
                {"id": "p2", "name": "Limonada", "price": 5000, "stock_quantity": None, "is_available": True, "category": {"name": "Bebidas"}},
                {"id": "p3", "name": "Papas", "price": 4000, "stock_quantity": 0, "is_available": False, "category": None},
            ],
        },
        "biz-2": {"orders": [], "products": []},
    },
}


def fixed_clock(tz: ZoneInfo) -> datetime:
    return FIXED_NOW.astimezone(tz)


class ChunkStream(httpx.AsyncByteStream):
    """Response body delivered exactly in the given chunks."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = list(chunks)
        self.consumed = 0

    async def __aiter__(self):
        for chunk in self._chunks:
            self.consumed += 1
            yield chunk


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COMANDA_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("COMANDA_AUTH_MODE", "off")
    monkeypatch.setenv("COMANDA_LOG_TO_FILE", "off")
    monkeypatch.delenv("COMANDA_CONFIG_PATH", raising=False)
    monkeypatch.delenv("COMANDA_AUTH_TOKENS", raising=False)
    monkeypatch.delenv("COMANDA_DATA_FILE", raising=False)


@pytest.fixture
def data_source() -> InMemoryDataSource:
    return InMemoryDataSource.from_fixture(BUSINESS_FIXTURE)


@pytest.fixture
def upstream_factory() -> Callable[..., tuple[UpstreamClient, list[dict]]]:
    """Build an ``UpstreamClient`` whose replies are scripted per call.

    Each script entry is either a list of body chunks (HTTP 200), an
    ``httpx.Response``, or an exception to raise. Returns the client and a list
    that records the JSON body of every request made.
    """

    def build(*script: object) -> tuple[UpstreamClient, list[dict]]:
        requests: list[dict] = []
        replies = list(script)

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            reply = replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            if isinstance(reply, httpx.Response):
                return reply
            return httpx.Response(200, stream=ChunkStream(reply), headers={"Content-Type": "text/plain; charset=utf-8"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return UpstreamClient("http://model.local/chat", client=client), requests

    return build


@pytest.fixture
def clock() -> Callable[[ZoneInfo], datetime]:
    return fixed_clock


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW
