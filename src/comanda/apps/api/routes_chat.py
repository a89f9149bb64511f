from uuid import uuid4

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from comanda.core.gateway.orchestrator import ChatOrchestrator
from comanda.core.gateway.schemas import ChatRequest
from comanda.core.logging.context import get_log_context, log_context
from comanda.core.observability.trace import Trace

from .deps import TenantContext, get_orchestrator, require_tenant

router = APIRouter()


@router.post("")
async def chat(
    payload: ChatRequest,
    request: Request,
    tenant: TenantContext = Depends(require_tenant),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    interaction_id = uuid4().hex[:8]
    trace = Trace(
        interaction_id=interaction_id,
        tenant_id=tenant.tenant_id,
        correlation_id=get_log_context().get("correlation_id"),
    )
    with log_context(interaction_id=interaction_id, tenant_id=tenant.tenant_id):
        reply = await orchestrator.handle(
            payload.messages,
            tenant.tenant_id,
            is_disconnected=request.is_disconnected,
            trace=trace,
        )
    return StreamingResponse(
        reply.body,
        media_type="text/plain; charset=utf-8",
        headers={"X-Comanda-Branch": reply.branch, "X-Interaction-ID": interaction_id},
    )
