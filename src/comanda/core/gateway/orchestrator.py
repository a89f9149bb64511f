from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import uuid4
from zoneinfo import ZoneInfo

from comanda.core.config.loader import GatewaySettings
from comanda.core.observability.trace import Trace
from comanda.core.tools.base import ToolOutcome
from comanda.core.tools.dispatcher import ToolDispatcher
from comanda.core.tools.registry import ToolRegistry

from .errors import MalformedToolCall
from .prompts import system_instruction
from .protocol import format_tool_result, parse_tool_call
from .relay import DisconnectProbe, relay_stream, run_until_disconnected
from .scanner import DEFAULT_SENTINEL, ScanResult, ScanState, SentinelScanner
from .schemas import Conversation, Message
from .upstream import UpstreamClient, UpstreamStream

Branch = Literal["passthrough", "tool_call"]


@dataclass
class GatewayReply:
    branch: Branch
    body: AsyncIterator[bytes]
    conversation: Conversation
    trace: Trace
    tool_outcome: ToolOutcome | None = None


class ChatOrchestrator:
    """Two-phase chat: detect a tool call in the first reply, answer with a second.

    Exactly one of two things happens per request: the first reply is relayed
    as-is (buffered prefix, then live bytes), or the tool it asked for is run
    and a second upstream reply is relayed instead. Only one tool round trip is
    made; a sentinel in the second reply is ordinary text.
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        dispatcher: ToolDispatcher,
        registry: ToolRegistry,
        *,
        sentinel: str = DEFAULT_SENTINEL,
        heuristic_min_chars: int = 50,
        max_scan_bytes: int = 300,
        max_tool_call_bytes: int = 65536,
        timezone: str = "America/Bogota",
        reply_language: str = "Spanish",
        disconnect_poll_s: float = 0.1,
        clock: Callable[[ZoneInfo], datetime] | None = None,
    ) -> None:
        self.upstream = upstream
        self.dispatcher = dispatcher
        self.registry = registry
        self.sentinel = sentinel
        self.heuristic_min_chars = heuristic_min_chars
        self.max_scan_bytes = max_scan_bytes
        self.max_tool_call_bytes = max_tool_call_bytes
        self.tz = ZoneInfo(timezone)
        self.reply_language = reply_language
        self.disconnect_poll_s = disconnect_poll_s
        self._clock = clock or (lambda tz: datetime.now(tz=tz))
        self.logger = logging.getLogger("comanda.gateway")

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        *,
        upstream: UpstreamClient,
        dispatcher: ToolDispatcher,
        registry: ToolRegistry,
    ) -> "ChatOrchestrator":
        return cls(
            upstream,
            dispatcher,
            registry,
            sentinel=settings.sentinel,
            heuristic_min_chars=settings.heuristic_min_chars,
            max_scan_bytes=settings.max_scan_bytes,
            max_tool_call_bytes=settings.max_tool_call_bytes,
            timezone=settings.timezone,
            reply_language=settings.reply_language,
            disconnect_poll_s=settings.disconnect_poll_s,
        )

    def new_scanner(self) -> SentinelScanner:
        return SentinelScanner(
            self.sentinel,
            heuristic_min_chars=self.heuristic_min_chars,
            max_scan_bytes=self.max_scan_bytes,
            max_tool_call_bytes=self.max_tool_call_bytes,
        )

    def build_conversation(self, messages: Iterable[Message]) -> Conversation:
        instruction = system_instruction(
            self.registry,
            sentinel=self.sentinel,
            now=self._clock(self.tz),
            reply_language=self.reply_language,
        )
        return Conversation.with_system_instruction(messages, instruction)

    async def handle(
        self,
        messages: Iterable[Message],
        tenant_id: str,
        *,
        is_disconnected: DisconnectProbe | None = None,
        trace: Trace | None = None,
    ) -> GatewayReply:
        """Run everything up to the first byte the client will receive.

        Raises ``UpstreamUnavailable`` or ``MalformedToolCall`` before any
        output exists, and ``ClientDisconnected`` if the client leaves first.
        """
        trace = trace or Trace(interaction_id=uuid4().hex[:8], tenant_id=tenant_id)
        conversation = self.build_conversation(messages)
        work = self._detect_and_prepare(conversation, tenant_id, trace, is_disconnected)
        if is_disconnected is None:
            reply = await work
        else:
            reply = await run_until_disconnected(work, is_disconnected, self.disconnect_poll_s)

        self.logger.info(
            "chat_prepared",
            extra={
                "extra_fields": {
                    "interaction_id": trace.interaction_id,
                    "branch": reply.branch,
                    "tool": reply.tool_outcome.name if reply.tool_outcome else None,
                    "tool_ok": reply.tool_outcome.ok if reply.tool_outcome else None,
                    "events": trace.events,
                    "elapsed_ms": trace.elapsed_ms(),
                }
            },
        )
        return reply

    async def _detect_and_prepare(
        self,
        conversation: Conversation,
        tenant_id: str,
        trace: Trace,
        is_disconnected: DisconnectProbe | None,
    ) -> GatewayReply:
        with trace.timed("upstream_call", phase=1):
            first = await self.upstream.open_stream(conversation.payload(), phase=1)

        try:
            with trace.timed("scan") as info:
                result = await self.new_scanner().scan(first.chunks)
                info.update(state=result.state.value, reason=result.reason, buffered_bytes=len(result.buffer))
        except BaseException:
            await first.aclose()
            raise

        if result.state is ScanState.PASSTHROUGH:
            return GatewayReply(
                branch="passthrough",
                body=relay_stream(
                    first,
                    result.buffer.take(),
                    is_disconnected=is_disconnected,
                    branch="passthrough",
                    interaction_id=trace.interaction_id,
                ),
                conversation=conversation,
                trace=trace,
            )

        await first.aclose()
        return await self._answer_with_tool(conversation, tenant_id, trace, result, is_disconnected)

    async def _answer_with_tool(
        self,
        conversation: Conversation,
        tenant_id: str,
        trace: Trace,
        result: ScanResult,
        is_disconnected: DisconnectProbe | None,
    ) -> GatewayReply:
        if result.oversized:
            raise MalformedToolCall(f"tool call payload exceeds {self.max_tool_call_bytes} bytes")
        try:
            call = parse_tool_call(result.text, self.sentinel)
        except MalformedToolCall as exc:
            trace.emit("tool_call_malformed", {"reason": str(exc)})
            self.logger.warning(
                "tool_call_malformed",
                extra={"extra_fields": {"interaction_id": trace.interaction_id, "reason": str(exc), "raw": exc.raw[:500]}},
            )
            raise

        with trace.timed("tool_invocation", tool=call.name) as info:
            outcome = await self.dispatcher.invoke(call.name, call.args, tenant_id)
            info.update(ok=outcome.ok, error_type=outcome.error_type)

        conversation.append("assistant", result.text)
        conversation.append("system", format_tool_result(outcome.payload()))

        with trace.timed("upstream_call", phase=2):
            second: UpstreamStream = await self.upstream.open_stream(conversation.payload(), phase=2)

        return GatewayReply(
            branch="tool_call",
            body=relay_stream(
                second,
                is_disconnected=is_disconnected,
                branch="tool_call",
                interaction_id=trace.interaction_id,
            ),
            conversation=conversation,
            trace=trace,
            tool_outcome=outcome,
        )
