"""Chat Route — single-turn intent-routed chat for the document editor.

Invariants:
    - Always 200 with a well-formed ChatResponse once the body validates:
      IntentRouter.route() never raises
"""

from fastapi import APIRouter, Depends

from nexus_agents.core.execution_context import ExecutionContext, new_session_id
from nexus_agents.schemas.agent import ChatRequestBody, ChatResponse
from nexus_agents.services.intent_router import (
    IntentRequest, IntentRouter, get_intent_router,
)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequestBody,
    intent_router: IntentRouter = Depends(get_intent_router),
):
    context = ExecutionContext(
        session_id=body.session_id or new_session_id(),
        user_id=body.user_id,
        metadata=body.metadata,
    )
    result = await intent_router.route(
        IntentRequest(body.message, context, body.document_id),
    )
    return {"session_id": context.session_id, **result.to_dict()}
