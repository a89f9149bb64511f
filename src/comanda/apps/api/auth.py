from __future__ import annotations

import hmac
from typing import Protocol

import httpx
from fastapi import Request

from comanda.core.config.loader import GatewaySettings
from comanda.core.http import ComandaHTTPStatusError, request_with_retry

AUTH_HEADER = "X-COMANDA-TOKEN"
AUTH_COOKIE = "comanda_token"


def extract_token(request: Request) -> str | None:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.casefold() == "bearer" and credentials.strip():
        return credentials.strip()
    header_token = request.headers.get(AUTH_HEADER)
    if header_token:
        return header_token
    cookie_token = request.cookies.get(AUTH_COOKIE)
    if cookie_token:
        return cookie_token
    return None


class Authenticator(Protocol):
    mode: str

    async def authenticate(self, request: Request) -> str | None:
        """Return the caller's user id, or None when the request carries no valid session."""


class StaticTokenAuthenticator:
    mode = "token"

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    async def authenticate(self, request: Request) -> str | None:
        provided = extract_token(request)
        if not provided:
            return None
        user_id = None
        # Compare against every token so the timing does not depend on which one matched.
        for token, candidate in self._tokens.items():
            if hmac.compare_digest(provided.encode(), token.encode()):
                user_id = candidate
        return user_id


class SupabaseAuthenticator:
    """Resolves the session token against Supabase Auth (``GET /auth/v1/user``)."""

    mode = "supabase"

    def __init__(self, url: str, key: str, client: httpx.AsyncClient | None = None) -> None:
        self.user_url = url.rstrip("/") + "/auth/v1/user"
        self.key = key
        self._client = client

    async def authenticate(self, request: Request) -> str | None:
        token = extract_token(request)
        if not token:
            return None
        try:
            response = await request_with_retry(
                "GET",
                self.user_url,
                client=self._client,
                headers={"apikey": self.key, "Authorization": f"Bearer {token}"},
                redact_url=True,
            )
        except ComandaHTTPStatusError as exc:
            if exc.status_code in {401, 403}:
                return None
            raise
        try:
            user_id = response.json().get("id")
        except (ValueError, AttributeError):
            return None
        return str(user_id) if user_id else None


class DisabledAuthenticator:
    """Local development: every request acts as ``dev_user_id``."""

    mode = "off"

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id

    async def authenticate(self, request: Request) -> str | None:
        return self.user_id


def build_authenticator(settings: GatewaySettings) -> Authenticator:
    if settings.auth_mode == "off":
        return DisabledAuthenticator(settings.dev_user_id)
    if settings.auth_mode == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("COMANDA_SUPABASE_URL and COMANDA_SUPABASE_KEY must be set when COMANDA_AUTH_MODE=supabase")
        return SupabaseAuthenticator(settings.supabase_url, settings.supabase_key)
    return StaticTokenAuthenticator(settings.auth_token_map())
