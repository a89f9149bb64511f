from __future__ import annotations

import json
from typing import Any

from .errors import MalformedToolCall
from .schemas import ToolCall

TOOL_RESULT_PREFIX = "TOOL_RESULT: "

_DECODER = json.JSONDecoder()


def parse_tool_call(text: str, sentinel: str) -> ToolCall:
    """Parse the ``{"name": ..., "args": ...}`` object after the first sentinel.

    Only the text up to the next sentinel is considered, and decoding stops at
    the end of the first JSON object, so code fences and trailing prose are
    tolerated. ``args`` may be omitted or null (treated as ``{}``). Neither the
    name nor the args shape is judged here: the dispatcher folds an unknown
    name or bad args into a tool result.
    """
    _, found, remainder = text.partition(sentinel)
    if not found:
        raise MalformedToolCall("tool call sentinel not found", raw=text)
    remainder = remainder.split(sentinel, 1)[0]

    start = remainder.find("{")
    if start == -1:
        raise MalformedToolCall("no JSON object after tool call sentinel", raw=remainder)
    try:
        data, _ = _DECODER.raw_decode(remainder, start)
    except json.JSONDecodeError as exc:
        raise MalformedToolCall(f"invalid tool call JSON: {exc.msg}", raw=remainder) from exc
    if not isinstance(data, dict):
        raise MalformedToolCall("tool call payload is not a JSON object", raw=remainder)

    name = data.get("name")
    if isinstance(name, str):
        name = name.strip()
    args = data.get("args")
    return ToolCall(name=name, args={} if args is None else args)


def format_tool_result(payload: Any) -> str:
    return TOOL_RESULT_PREFIX + json.dumps(payload, ensure_ascii=False, default=str)
