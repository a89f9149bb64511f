from __future__ import annotations

import asyncio
import time

from comanda.core.cache.ttl import AsyncTTLCache


def test_ttl_cache_get_or_set_computes_once_within_ttl() -> None:
    cache = AsyncTTLCache(default_ttl_s=10)
    counter = {"count": 0}

    async def compute() -> bool:
        counter["count"] += 1
        await asyncio.sleep(0)
        return True

    async def scenario() -> list[object]:
        return await asyncio.gather(*(cache.get_or_set("upstream_ping:http://x", compute) for _ in range(3)))

    assert asyncio.run(scenario()) == [True, True, True]
    assert asyncio.run(cache.get_or_set("upstream_ping:http://x", compute)) is True
    assert counter["count"] == 1


def test_ttl_cache_expires_and_clears() -> None:
    cache = AsyncTTLCache(default_ttl_s=0.1)

    cache.set("k", "v")
    assert cache.get("k") == "v"

    time.sleep(0.15)
    assert cache.get("k") is None

    cache.set("k", "v")
    cache.clear()
    assert cache.get("k") is None
