from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
interaction_id_var: ContextVar[str | None] = ContextVar("interaction_id", default=None)
tenant_id_var: ContextVar[str | None] = ContextVar("tenant_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar[str | None]] = {
    "correlation_id": correlation_id_var,
    "interaction_id": interaction_id_var,
    "tenant_id": tenant_id_var,
}


def set_context(**kwargs: str | None) -> dict[str, Token[str | None]]:
    tokens: dict[str, Token[str | None]] = {}
    for key, value in kwargs.items():
        var = _CONTEXT_VARS.get(key)
        if var is None or value is None:
            continue
        tokens[key] = var.set(value)
    return tokens


def reset_context(tokens: dict[str, Token[str | None]]) -> None:
    for key, token in tokens.items():
        var = _CONTEXT_VARS.get(key)
        if var is not None:
            var.reset(token)


@contextmanager
def log_context(
    correlation_id: str | None = None,
    interaction_id: str | None = None,
    tenant_id: str | None = None,
) -> Iterator[None]:
    """Bind request identifiers for every log line emitted inside the block.

    Unset arguments leave the enclosing value in place, so nested blocks can add
    a tenant without dropping the correlation id bound by the middleware.
    """
    tokens = set_context(
        correlation_id=correlation_id,
        interaction_id=interaction_id,
        tenant_id=tenant_id,
    )
    try:
        yield
    finally:
        reset_context(tokens)


def get_log_context() -> dict[str, str]:
    values = {key: var.get() for key, var in _CONTEXT_VARS.items()}
    return {key: value for key, value in values.items() if value is not None}
