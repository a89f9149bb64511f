from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable


class AsyncTTLCache:
    """Small expiring cache for values produced by coroutines (health probes)."""

    def __init__(self, default_ttl_s: float) -> None:
        self.default_ttl_s = max(0.1, float(default_ttl_s))
        self._data: dict[str, tuple[float, object]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, key: str) -> object | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: object, ttl_s: float | None = None) -> None:
        ttl_value = self.default_ttl_s if ttl_s is None else max(0.1, float(ttl_s))
        self._data[key] = (time.monotonic() + ttl_value, value)

    async def get_or_set(self, key: str, fn: Callable[[], Awaitable[object]], ttl_s: float | None = None) -> object:
        cached = self.get(key)
        if cached is not None:
            return cached

        # Concurrent misses for one key share a single computation.
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self.get(key)
            if cached is not None:
                return cached
            value = await fn()
            self.set(key, value, ttl_s)
            return value

    def clear(self) -> None:
        self._data.clear()
        self._locks.clear()
