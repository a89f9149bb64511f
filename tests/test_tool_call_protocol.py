from __future__ import annotations

import json

import pytest

from comanda.core.gateway.errors import MalformedToolCall
from comanda.core.gateway.protocol import TOOL_RESULT_PREFIX, format_tool_result, parse_tool_call

SENTINEL = "__TOOL_CALL__"


def test_parse_tool_call_reads_name_and_args() -> None:
    call = parse_tool_call('__TOOL_CALL__ {"name": "get_financial_stats", "args": {"range": "week"}}', SENTINEL)

    assert call.name == "get_financial_stats"
    assert call.args == {"range": "week"}


def test_parse_tool_call_ignores_text_around_payload() -> None:
    text = 'Un momento...\n__TOOL_CALL__\n```json\n{"name": "list_products", "args": {}}\n```'

    call = parse_tool_call(text, SENTINEL)

    assert call.name == "list_products"
    assert call.args == {}


@pytest.mark.parametrize("payload", ['{"name": "list_products"}', '{"name": "list_products", "args": null}'])
def test_missing_or_null_args_become_empty(payload: str) -> None:
    assert parse_tool_call(SENTINEL + " " + payload, SENTINEL).args == {}


def test_non_object_args_are_left_for_the_dispatcher() -> None:
    call = parse_tool_call('__TOOL_CALL__ {"name": "list_products", "args": [1, 2]}', SENTINEL)

    assert call.args == [1, 2]


def test_parse_tool_call_takes_first_of_repeated_calls() -> None:
    text = (
        '__TOOL_CALL__ {"name": "list_products", "args": {}}\n'
        '__TOOL_CALL__ {"name": "get_recent_orders", "args": {}}'
    )

    call = parse_tool_call(text, SENTINEL)

    assert call.name == "list_products"
    assert call.args == {}


def test_parse_tool_call_stops_at_end_of_object() -> None:
    text = '__TOOL_CALL__ {"name": "list_products", "args": {}} (te muestro {todo})'

    assert parse_tool_call(text, SENTINEL).name == "list_products"


@pytest.mark.parametrize(
    ("payload", "name"),
    [('{"args": {}}', None), ('{"name": 42}', 42), ('{"name": "  ", "args": {}}', "")],
)
def test_odd_names_are_left_for_the_dispatcher(payload: str, name: object) -> None:
    assert parse_tool_call(SENTINEL + " " + payload, SENTINEL).name == name


@pytest.mark.parametrize(
    "text",
    [
        "__TOOL_CALL__ not json at all",
        '__TOOL_CALL__ {"name": "list_products", "args": {',
        "__TOOL_CALL__ {'name': 'list_products'}",
        "no sentinel here",
    ],
)
def test_malformed_payloads_raise(text: str) -> None:
    with pytest.raises(MalformedToolCall):
        parse_tool_call(text, SENTINEL)


def test_format_tool_result_keeps_unicode() -> None:
    line = format_tool_result({"items": "2x Piña colada"})

    assert line.startswith(TOOL_RESULT_PREFIX)
    assert "Piña" in line
    assert json.loads(line[len(TOOL_RESULT_PREFIX) :]) == {"items": "2x Piña colada"}
