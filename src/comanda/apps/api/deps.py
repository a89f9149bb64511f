from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Request

from comanda.core.business.base import BusinessDataSource
from comanda.core.business.memory import InMemoryDataSource
from comanda.core.business.supabase import SupabaseDataSource
from comanda.core.config.loader import GatewaySettings, load_settings
from comanda.core.gateway.errors import AuthenticationError, TenantNotFound
from comanda.core.gateway.orchestrator import ChatOrchestrator
from comanda.core.gateway.upstream import UpstreamClient
from comanda.core.tools.dispatcher import ToolDispatcher
from comanda.core.tools.registry import ToolRegistry, default_registry

from .auth import Authenticator, build_authenticator


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    return load_settings()


def get_tool_registry() -> ToolRegistry:
    return default_registry()


@lru_cache(maxsize=1)
def get_data_source() -> BusinessDataSource:
    settings = get_settings()
    if settings.data_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("COMANDA_SUPABASE_URL and COMANDA_SUPABASE_KEY must be set when COMANDA_DATA_BACKEND=supabase")
        return SupabaseDataSource(settings.supabase_url, settings.supabase_key)
    if settings.data_file:
        return InMemoryDataSource.from_file(settings.data_file)
    return InMemoryDataSource()


@lru_cache(maxsize=1)
def get_upstream_client() -> UpstreamClient:
    settings = get_settings()
    return UpstreamClient(
        settings.upstream_url,
        api_key=settings.upstream_api_key,
        timeout_s=settings.upstream_timeout_s,
        connect_timeout_s=settings.upstream_connect_timeout_s,
    )


@lru_cache(maxsize=1)
def get_dispatcher() -> ToolDispatcher:
    settings = get_settings()
    return ToolDispatcher(
        get_tool_registry(),
        get_data_source(),
        timeout_s=settings.tool_timeout_s,
        timezone=settings.timezone,
    )


@lru_cache(maxsize=1)
def get_orchestrator() -> ChatOrchestrator:
    return ChatOrchestrator.from_settings(
        get_settings(),
        upstream=get_upstream_client(),
        dispatcher=get_dispatcher(),
        registry=get_tool_registry(),
    )


@lru_cache(maxsize=1)
def get_authenticator() -> Authenticator:
    return build_authenticator(get_settings())


@dataclass(frozen=True)
class TenantContext:
    user_id: str
    tenant_id: str


async def require_tenant(
    request: Request,
    authenticator: Authenticator = Depends(get_authenticator),
    data_source: BusinessDataSource = Depends(get_data_source),
) -> TenantContext:
    user_id = await authenticator.authenticate(request)
    if not user_id:
        raise AuthenticationError("no valid session")
    tenant_id = await data_source.get_tenant_id(user_id)
    if not tenant_id:
        raise TenantNotFound(f"no business profile for user {user_id}")
    return TenantContext(user_id=user_id, tenant_id=tenant_id)


def reset_dependencies() -> None:
    for getter in (get_settings, get_data_source, get_upstream_client, get_dispatcher, get_orchestrator, get_authenticator):
        getter.cache_clear()
