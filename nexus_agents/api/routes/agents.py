"""Agent Routes — list agents, SSE chunk stream, collected execution.

Invariants:
    - Unknown agent → 404 (ResourceNotFoundError), premium agent without
      premium context → 403 (AgentAccessDeniedError), both before streaming starts
    - User message persisted by the route before the stream starts; a
      persistence failure does not block the response and is reported as a
      metadata{status: "persistence_failed", role: "user"} chunk right after
      "starting" (stream) or user_message_saved=False (execute)
    - Client disconnect closes the chunk stream, which cancels the turn engine

Design Decisions:
    - StreamingResponse for SSE: one `data: {chunk}` line per AgentChunk
    - session_id echoed in the X-Session-Id header so clients that did not
      send one can correlate the stream
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from nexus_agents.core.chunks import (
    STATUS_PERSISTENCE_FAILED, STATUS_STARTING, AgentChunk, metadata_chunk,
    sse_line,
)
from nexus_agents.core.domain_types import ChunkType, MessageRole
from nexus_agents.core.errors import AgentAccessDeniedError, ErrorContext
from nexus_agents.core.execution_context import ExecutionContext, new_session_id
from nexus_agents.core.repository_protocols import MessageStore
from nexus_agents.infrastructure.message_store import get_message_store
from nexus_agents.schemas.agent import (
    AgentExecuteResponse, AgentInfo, AgentRequestBody,
)
from nexus_agents.services.agent_directory import (
    Agent, AgentDirectory, get_agent_directory,
)
from nexus_agents.services.turn_engine import TurnRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/agents", tags=["agents"])

# ADR: SSE headers prevent proxy/browser buffering of streamed chunks.
_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
    "Connection": "keep-alive",
}


def build_context(body: AgentRequestBody) -> ExecutionContext:
    return ExecutionContext(
        session_id=body.session_id or new_session_id(),
        user_id=body.user_id,
        project_id=body.project_id,
        metadata=body.metadata,
    )


def _authorize(
    directory: AgentDirectory, agent_id: str, context: ExecutionContext,
) -> Agent:
    agent = directory.resolve(agent_id)
    if not agent.can_execute(context):
        raise AgentAccessDeniedError(
            agent_id, ErrorContext(session_id=context.session_id, agent_id=agent_id),
        )
    return agent


async def _save_user_message(
    messages: MessageStore, context: ExecutionContext, text: str, agent_id: str,
) -> bool:
    try:
        await messages.append_message(
            context.session_id, MessageRole.USER.value, text,
            {"agent_id": agent_id},
        )
    except Exception as e:
        logger.error(
            "Failed to persist user message: %s", e,
            extra={"session_id": context.session_id, "agent_id": agent_id},
        )
        return False
    return True


def _is_starting(chunk: AgentChunk) -> bool:
    return chunk.type == ChunkType.METADATA and chunk.data["status"] == STATUS_STARTING


@router.get("", response_model=list[AgentInfo])
async def list_agents(directory: AgentDirectory = Depends(get_agent_directory)):
    return directory.list_metadata()


@router.post("/{agent_id}/stream")
async def stream_agent(
    agent_id: str,
    body: AgentRequestBody,
    directory: AgentDirectory = Depends(get_agent_directory),
    messages: MessageStore = Depends(get_message_store),
):
    """SSE stream of AgentChunks for one request."""
    context = build_context(body)
    agent = _authorize(directory, agent_id, context)
    saved = await _save_user_message(messages, context, body.message, agent_id)
    request = TurnRequest(body.message, context)

    async def event_generator():
        chunks = agent.stream(request)
        try:
            async for chunk in chunks:
                yield sse_line(chunk)
                if not saved and _is_starting(chunk):
                    yield sse_line(metadata_chunk(
                        STATUS_PERSISTENCE_FAILED, role=MessageRole.USER.value,
                        message="User message could not be saved",
                    ))
        finally:
            await chunks.aclose()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={**_SSE_HEADERS, "X-Session-Id": context.session_id},
    )


@router.post("/{agent_id}/execute", response_model=AgentExecuteResponse)
async def execute_agent(
    agent_id: str,
    body: AgentRequestBody,
    directory: AgentDirectory = Depends(get_agent_directory),
    messages: MessageStore = Depends(get_message_store),
):
    """Run the same stream to completion and return it collected."""
    context = build_context(body)
    agent = _authorize(directory, agent_id, context)
    saved = await _save_user_message(messages, context, body.message, agent_id)
    response = await agent.execute(TurnRequest(body.message, context))
    response.metadata["user_message_saved"] = saved
    return response.to_dict()
