from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator


@dataclass
class Trace:
    """Per-request timeline of gateway events, logged once the request ends."""

    interaction_id: str
    tenant_id: str | None = None
    correlation_id: str | None = None
    started_at: float = field(default_factory=time.perf_counter)
    events: list[dict[str, Any]] = field(default_factory=list)

    def emit(self, name: str, payload: dict[str, Any] | None = None) -> None:
        enriched_payload = dict(payload or {})
        enriched_payload.setdefault("interaction_id", self.interaction_id)
        if self.correlation_id:
            enriched_payload.setdefault("correlation_id", self.correlation_id)
        enriched_payload.setdefault("elapsed_ms", self.elapsed_ms())
        self.events.append({"event": name, "payload": enriched_payload})

    @contextmanager
    def timed(self, name: str, **payload: Any) -> Iterator[dict[str, Any]]:
        """Emit ``name`` with ``duration_ms`` and ``ok`` once the block exits.

        The yielded dict can be filled in by the block to enrich the event.
        """
        extra: dict[str, Any] = dict(payload)
        start = time.perf_counter()
        ok = False
        try:
            yield extra
            ok = True
        finally:
            extra.setdefault("ok", ok)
            extra["duration_ms"] = int((time.perf_counter() - start) * 1000)
            self.emit(name, extra)

    def elapsed_ms(self) -> int:
        return int((time.perf_counter() - self.started_at) * 1000)

    def event_names(self) -> list[str]:
        return [event["event"] for event in self.events]
