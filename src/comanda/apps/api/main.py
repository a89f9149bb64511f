from __future__ import annotations

import logging
import os
import sys
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response

from comanda.core.cache.ttl import AsyncTTLCache
from comanda.core.gateway.errors import (
    AuthenticationError,
    ClientDisconnected,
    MalformedToolCall,
    TenantNotFound,
    UpstreamUnavailable,
)
from comanda.core.http import close_http_client
from comanda.core.logging import configure_logging
from comanda.core.logging.context import log_context

from .deps import get_settings, get_tool_registry, get_upstream_client, reset_dependencies
from .routes_chat import router as chat_router

logger = logging.getLogger("comanda.api")

_HEALTH_PING_CACHE = AsyncTTLCache(default_ttl_s=float(os.getenv("COMANDA_PING_CACHE_TTL_S", "10")))


def _state_dir_writable() -> bool:
    state_dir = get_settings().state_path
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
        probe = state_dir / ".write-check"
        probe.write_text("ok", encoding="utf-8")
        probe.unlink(missing_ok=True)
        return True
    except OSError:
        return False


async def _upstream_reachable() -> bool:
    settings = get_settings()
    cache_key = f"upstream_ping:{settings.upstream_url}"
    return bool(await _HEALTH_PING_CACHE.get_or_set(cache_key, lambda: get_upstream_client().ping(timeout_s=1.0)))


app = FastAPI(title="Comanda Chat Gateway")
configure_logging(get_settings().state_path)

app.include_router(chat_router, prefix="/chat", tags=["chat"])


@app.middleware("http")
async def request_context_middleware(request, call_next):
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid4())
    with log_context(correlation_id=correlation_id):
        response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError) -> Response:
    return Response(status_code=401)


@app.exception_handler(TenantNotFound)
async def tenant_not_found_handler(request: Request, exc: TenantNotFound) -> Response:
    logger.info("tenant_not_found", extra={"extra_fields": {"reason": str(exc)}})
    return PlainTextResponse("Business profile not found", status_code=404)


@app.exception_handler(UpstreamUnavailable)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailable) -> Response:
    logger.error("upstream_unavailable", extra={"extra_fields": {"reason": str(exc), "status": exc.status_code}})
    return PlainTextResponse("Error communicating with AI service", status_code=502)


@app.exception_handler(MalformedToolCall)
async def malformed_tool_call_handler(request: Request, exc: MalformedToolCall) -> Response:
    logger.error("malformed_tool_call", extra={"extra_fields": {"reason": str(exc)}})
    return PlainTextResponse("Error parsing AI tool request", status_code=500)


@app.exception_handler(ClientDisconnected)
async def client_disconnected_handler(request: Request, exc: ClientDisconnected) -> Response:
    logger.debug("client_disconnected", extra={"extra_fields": {"path": request.url.path}})
    # Nobody is listening; the status only shows up in access logs.
    return Response(status_code=499)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
    logger.exception("unhandled_error", extra={"extra_fields": {"path": request.url.path}})
    return PlainTextResponse("Internal Server Error", status_code=500)


@app.on_event("shutdown")
async def shutdown() -> None:
    await get_upstream_client().aclose()
    await close_http_client()
    _HEALTH_PING_CACHE.clear()
    reset_dependencies()


@app.get("/healthz")
def healthz() -> dict[str, bool]:
    return {"ok": True}


@app.get("/healthz/full")
async def healthz_full() -> dict[str, object]:
    settings = get_settings()
    state_writable = _state_dir_writable()
    upstream_reachable = await _upstream_reachable()
    auth_ready = settings.auth_mode != "token" or bool(settings.auth_token_map())
    data_ready = settings.data_backend != "supabase" or bool(settings.supabase_url and settings.supabase_key)

    return {
        "ok": state_writable and upstream_reachable and auth_ready and data_ready,
        "python": {"version": sys.version.split()[0]},
        "state_dir": {"path": str(settings.state_path), "writable": state_writable},
        "auth": {"mode": settings.auth_mode, "ready": auth_ready},
        "data": {"backend": settings.data_backend, "ready": data_ready},
        "upstream": {"reachable": upstream_reachable},
        "scanner": {
            "sentinel": settings.sentinel,
            "heuristic_min_chars": settings.heuristic_min_chars,
            "max_scan_bytes": settings.max_scan_bytes,
        },
        "tools": get_tool_registry().names(),
    }


def run() -> None:
    uvicorn.run("comanda.apps.api.main:app", host="127.0.0.1", port=8000)
