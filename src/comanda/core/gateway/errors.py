from __future__ import annotations


class GatewayError(RuntimeError):
    """Base error for the chat gateway request lifecycle."""


class AuthenticationError(GatewayError):
    """No valid session: the request never reaches the orchestrator."""


class TenantNotFound(GatewayError):
    """The authenticated user has no business profile."""


class UpstreamUnavailable(GatewayError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedToolCall(GatewayError):
    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class ClientDisconnected(GatewayError):
    """The client went away; stop working without reporting a failure."""
