"""Tool-call detection over the model's streamed reply.

The scanner reads just enough of the upstream stream to decide whether the
model is answering in prose or emitting ``<sentinel> {"name": ..., "args": ...}``.
Prose is detected early so the client sees its first bytes quickly; everything
read while deciding is kept verbatim for replay.
"""

from __future__ import annotations

import codecs
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

DEFAULT_SENTINEL = "__TOOL_CALL__"


class ScanState(str, Enum):
    SCANNING = "scanning"
    TOOL_CALL = "tool_call"
    PASSTHROUGH = "passthrough"


class StreamBuffer:
    """Raw chunks captured while scanning, in arrival order."""

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._size = 0

    def append(self, chunk: bytes) -> None:
        self._chunks.append(chunk)
        self._size += len(chunk)

    def take(self) -> list[bytes]:
        """Hand the captured chunks to the caller and leave the buffer empty."""
        chunks = self._chunks
        self._chunks = []
        self._size = 0
        return chunks

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    def __len__(self) -> int:
        return self._size


@dataclass
class ScanResult:
    state: ScanState
    buffer: StreamBuffer
    text: str
    reason: str
    oversized: bool = False


class SentinelScanner:
    """Single-use state machine: ``SCANNING`` then ``TOOL_CALL`` or ``PASSTHROUGH``.

    Two independent bounds end the scan as passthrough:

    * ``heuristic_min_chars``: more decoded characters than this and no
      ``marker_char`` anywhere in them (the sentinel cannot be starting).
    * ``max_scan_bytes``: more raw bytes buffered than this, whatever the text.

    Text is decoded incrementally and checked cumulatively, so a sentinel or a
    multi-byte character split across chunks is still seen whole.
    """

    def __init__(
        self,
        sentinel: str = DEFAULT_SENTINEL,
        *,
        heuristic_min_chars: int = 50,
        max_scan_bytes: int = 300,
        max_tool_call_bytes: int = 65536,
        marker_char: str | None = None,
    ) -> None:
        if not sentinel:
            raise ValueError("sentinel must be a non-empty string")
        self.sentinel = sentinel
        self.marker_char = marker_char or sentinel[0]
        self.heuristic_min_chars = heuristic_min_chars
        self.max_scan_bytes = max_scan_bytes
        self.max_tool_call_bytes = max_tool_call_bytes

        self.state = ScanState.SCANNING
        self.reason = ""
        self.buffer = StreamBuffer()
        self.text = ""
        self.oversized = False
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._payload_parts: list[str] = []
        self._payload_bytes = 0

    def feed(self, chunk: bytes) -> ScanState:
        if self.state is not ScanState.SCANNING:
            raise RuntimeError(f"scanner already decided: {self.state.value}")

        self.buffer.append(chunk)
        self.text += self._decoder.decode(chunk)

        if self.sentinel in self.text:
            self._decide(ScanState.TOOL_CALL, "sentinel")
            self._payload_bytes = len(self.buffer)
        elif len(self.text) > self.heuristic_min_chars and self.marker_char not in self.text:
            self._decide(ScanState.PASSTHROUGH, "heuristic")
        elif len(self.buffer) > self.max_scan_bytes:
            self._decide(ScanState.PASSTHROUGH, "ceiling")
        return self.state

    def finish(self) -> ScanState:
        """Upstream closed; settle whatever is still undecided."""
        if self.state is ScanState.SCANNING:
            self.text += self._decoder.decode(b"", final=True)
            if self.sentinel in self.text:
                self._decide(ScanState.TOOL_CALL, "sentinel")
            else:
                self._decide(ScanState.PASSTHROUGH, "end_of_stream")
        elif self.state is ScanState.TOOL_CALL:
            self._payload_parts.append(self._decoder.decode(b"", final=True))
            self.text += "".join(self._payload_parts)
            self._payload_parts = []
        return self.state

    def absorb(self, chunk: bytes) -> bool:
        """Collect the rest of a confirmed tool call.

        Returns False once ``max_tool_call_bytes`` is exceeded; the caller
        should stop reading and the result is flagged ``oversized``.
        """
        if self.state is not ScanState.TOOL_CALL:
            raise RuntimeError("absorb() is only valid after a tool call was detected")
        self._payload_bytes += len(chunk)
        if self._payload_bytes > self.max_tool_call_bytes:
            self.oversized = True
            return False
        self._payload_parts.append(self._decoder.decode(chunk))
        return True

    async def scan(self, chunks: AsyncIterator[bytes]) -> ScanResult:
        """Drive the state machine from ``chunks``.

        On passthrough the iterator is left positioned right after the last
        buffered chunk, so the caller continues from there. On a tool call the
        iterator is drained (up to the payload bound).
        """
        async for chunk in chunks:
            if not chunk:
                continue
            if self.feed(chunk) is not ScanState.SCANNING:
                break
        else:
            self.finish()
            return self.result()

        if self.state is ScanState.TOOL_CALL:
            async for chunk in chunks:
                if chunk and not self.absorb(chunk):
                    break
            self.finish()
        return self.result()

    def result(self) -> ScanResult:
        return ScanResult(
            state=self.state,
            buffer=self.buffer,
            text=self.text,
            reason=self.reason,
            oversized=self.oversized,
        )

    def _decide(self, state: ScanState, reason: str) -> None:
        self.state = state
        self.reason = reason
