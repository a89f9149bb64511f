from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone

from .context import get_log_context

_RESERVED = ("ts", "level", "logger", "event", "service")


class JSONFormatter(logging.Formatter):
    """Renders a record as one JSON line keyed by its event name.

    Gateway code logs short event names (``tool_invocation``, ``relay_finished``)
    and passes details through ``extra={"extra_fields": {...}}``. The request
    identifiers bound with ``log_context`` ride along on every line. Detail
    fields never overwrite the envelope keys.
    """

    def __init__(self, service: str = "comanda-chat-gateway") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, object] = {
            "ts": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "service": self.service,
        }
        payload.update(get_log_context())

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            for key, value in extra_fields.items():
                if key not in _RESERVED:
                    payload[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["error"] = {
                "type": exc_type.__name__,
                "message": str(exc_value) if exc_value else "",
                "stack": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)
