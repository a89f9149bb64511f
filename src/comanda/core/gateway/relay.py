from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import TypeVar

from .errors import ClientDisconnected, UpstreamUnavailable
from .upstream import UpstreamStream

DisconnectProbe = Callable[[], Awaitable[bool]]
T = TypeVar("T")

logger = logging.getLogger("comanda.relay")


async def _gone(is_disconnected: DisconnectProbe | None) -> bool:
    return is_disconnected is not None and await is_disconnected()


async def relay_stream(
    stream: UpstreamStream,
    prefix: Sequence[bytes] = (),
    *,
    is_disconnected: DisconnectProbe | None = None,
    branch: str = "passthrough",
    interaction_id: str | None = None,
) -> AsyncIterator[bytes]:
    """Yield ``prefix`` then the rest of ``stream``, byte for byte.

    Stops without further output when the client disconnects, and always
    closes the upstream response.
    """
    start = time.perf_counter()
    sent = 0
    outcome = "completed"
    try:
        for chunk in prefix:
            if await _gone(is_disconnected):
                outcome = "client_disconnected"
                return
            sent += len(chunk)
            yield chunk
        async for chunk in stream.chunks:
            if not chunk:
                continue
            if await _gone(is_disconnected):
                outcome = "client_disconnected"
                return
            sent += len(chunk)
            yield chunk
    except UpstreamUnavailable:
        # Headers are already out; the client only sees a truncated body.
        outcome = "upstream_interrupted"
        logger.warning(
            "relay_upstream_interrupted",
            extra={"extra_fields": {"branch": branch, "interaction_id": interaction_id, "bytes_sent": sent}},
        )
    except (asyncio.CancelledError, GeneratorExit):
        outcome = "client_disconnected"
        raise
    finally:
        await stream.aclose()
        level = logging.DEBUG if outcome == "client_disconnected" else logging.INFO
        logger.log(
            level,
            "relay_finished",
            extra={
                "extra_fields": {
                    "branch": branch,
                    "interaction_id": interaction_id,
                    "outcome": outcome,
                    "bytes_sent": sent,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                }
            },
        )


async def run_until_disconnected(
    work: Awaitable[T],
    is_disconnected: DisconnectProbe,
    poll_s: float = 0.1,
) -> T:
    """Await ``work`` but cancel it as soon as the client is gone.

    Raises :class:`ClientDisconnected` after the cancelled work has unwound.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_s)
            if done:
                return task.result()
            if await is_disconnected():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                raise ClientDisconnected("client disconnected before a reply was ready")
    except asyncio.CancelledError:
        task.cancel()
        raise
