from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from comanda.core.business.base import BusinessDataError, BusinessDataSource

from .base import (
    CollaboratorError,
    DispatchError,
    InvalidToolArguments,
    Tool,
    ToolContext,
    ToolOutcome,
    ToolTimeout,
)
from .registry import ToolRegistry


class ToolDispatcher:
    """Runs one named tool for one tenant and reports the outcome as data.

    Failures never raise out of :meth:`invoke`; they come back as a
    ``ToolOutcome`` with ``ok=False`` so the caller can hand them to the model.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        data_source: BusinessDataSource,
        *,
        timeout_s: float = 10.0,
        timezone: str = "America/Bogota",
        clock: Callable[[ZoneInfo], datetime] | None = None,
    ) -> None:
        self.registry = registry
        self.data_source = data_source
        self.timeout_s = timeout_s
        self.tz = ZoneInfo(timezone)
        self._clock = clock or (lambda tz: datetime.now(tz=tz))
        self.logger = logging.getLogger("comanda.tools")

    async def invoke(self, name: Any, args: Any, tenant_id: str) -> ToolOutcome:
        start = time.perf_counter()
        label = name if isinstance(name, str) else repr(name)
        try:
            tool = self.registry.get(name)
            parsed = self._validate(tool, args)
            ctx = ToolContext(tenant_id=tenant_id, data_source=self.data_source, now=self._clock(self.tz))
            result = await asyncio.wait_for(tool.run(parsed, ctx), timeout=self.timeout_s)
            outcome = ToolOutcome(name=label, ok=True, result=result)
        except asyncio.TimeoutError:
            outcome = self._failure(label, ToolTimeout(f"Tool {label} did not finish within {self.timeout_s:g}s."))
        except DispatchError as exc:
            outcome = self._failure(label, exc)
        except BusinessDataError as exc:
            outcome = self._failure(label, CollaboratorError(str(exc)))
        except Exception as exc:
            self.logger.exception("tool_crashed", extra={"extra_fields": {"tool": label}})
            outcome = ToolOutcome(name=label, ok=False, error=str(exc) or exc.__class__.__name__, error_type="ToolFailed")

        outcome.duration_ms = int((time.perf_counter() - start) * 1000)
        self.logger.info(
            "tool_invocation",
            extra={
                "extra_fields": {
                    "tool": label,
                    "ok": outcome.ok,
                    "error_type": outcome.error_type,
                    "duration_ms": outcome.duration_ms,
                }
            },
        )
        return outcome

    def _validate(self, tool: Tool, args: Any) -> BaseModel:
        if args is None:
            args = {}
        if not isinstance(args, dict):
            raise InvalidToolArguments(f"Arguments for {tool.definition.name.value} must be a JSON object.")
        try:
            return tool.input_model.model_validate(args)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'args'}: {error['msg']}" for error in exc.errors()
            )
            raise InvalidToolArguments(f"Invalid arguments for {tool.definition.name.value}: {problems}") from exc

    @staticmethod
    def _failure(name: str, exc: DispatchError) -> ToolOutcome:
        return ToolOutcome(name=name, ok=False, error=str(exc), error_type=exc.error_type)
