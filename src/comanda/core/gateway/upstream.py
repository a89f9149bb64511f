from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from comanda.core.http.client import build_timeout, user_agent

from .errors import UpstreamUnavailable


class UpstreamStream:
    """An open streamed reply from the model service.

    ``chunks`` is a single iterator: whoever reads it next continues where the
    previous reader stopped. Close it exactly once with :meth:`aclose`.
    """

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.chunks: AsyncGenerator[bytes, None] = self._iter_chunks()
        self.bytes_read = 0
        self._closed = False

    async def _iter_chunks(self) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in self.response.aiter_bytes():
                self.bytes_read += len(chunk)
                yield chunk
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(f"upstream stream interrupted: {exc.__class__.__name__}") from exc

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.chunks.aclose()
        finally:
            await self.response.aclose()


class UpstreamClient:
    """POSTs the conversation to the model service and opens its streamed reply.

    Calls are never retried: the reply is consumed as it streams, so a retry
    could duplicate output.
    """

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout_s: float = 60.0,
        connect_timeout_s: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self._client = client or httpx.AsyncClient(
            timeout=build_timeout(timeout_s, connect_timeout_s),
            headers={"User-Agent": user_agent()},
        )
        self._owns_client = client is None
        self.logger = logging.getLogger("comanda.upstream")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def open_stream(self, messages: list[dict[str, Any]], *, phase: int = 1) -> UpstreamStream:
        start = time.perf_counter()
        request = self._client.build_request("POST", self.url, json={"messages": messages}, headers=self._headers())
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            self._log_call(phase, start, ok=False, status=None, messages=len(messages))
            raise UpstreamUnavailable(f"upstream request failed: {exc.__class__.__name__}") from exc

        status = response.status_code
        if not 200 <= status < 300:
            await response.aclose()
            self._log_call(phase, start, ok=False, status=status, messages=len(messages))
            raise UpstreamUnavailable(f"upstream returned HTTP {status}", status_code=status)

        self._log_call(phase, start, ok=True, status=status, messages=len(messages))
        return UpstreamStream(response)

    async def ping(self, timeout_s: float = 1.0) -> bool:
        """True when the service answers HTTP at all (any status below 500)."""
        try:
            response = await self._client.request("OPTIONS", self.url, timeout=timeout_s)
        except httpx.HTTPError:
            return False
        return response.status_code < 500

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _log_call(self, phase: int, start: float, *, ok: bool, status: int | None, messages: int) -> None:
        self.logger.info(
            "upstream_call",
            extra={
                "extra_fields": {
                    "phase": phase,
                    "ok": ok,
                    "status": status,
                    "messages": messages,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                }
            },
        )
