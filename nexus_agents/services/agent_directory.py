"""Agent Directory — capability-set agents and the process-wide directory.

Invariants:
    - An Agent is {registry, prompt, model} around one TurnEngine; agents
      differ by registered tools, never by subclass
    - Premium agents fail closed: can_execute() requires premium is True
    - The directory is built once at startup and only read afterwards
    - execute() is stream() collected: the same chunks, never a second run

Design Decisions:
    - Module-level singleton with init/get (same lifecycle as db_manager):
      the FastAPI lifespan owns construction, routes only read
    - Registries frozen inside build_agent_directory() before any request
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

from nexus_agents.config import Settings
from nexus_agents.core.chunks import AgentChunk
from nexus_agents.core.domain_types import ChunkType
from nexus_agents.core.errors import ResourceNotFoundError
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.repository_protocols import (
    DocumentStore, MessageStore, ReasoningModel,
)
from nexus_agents.core.usage_ledger import PriceTable
from nexus_agents.services.content_generator import ContentGenerator
from nexus_agents.services.handle_editor import EditorHandlers
from nexus_agents.services.handle_session import SessionHandlers
from nexus_agents.services.system_prompt import (
    DOCUMENT_EDITOR_PROMPT, SESSION_MANAGER_PROMPT,
)
from nexus_agents.services.tool_registry import CapabilityRegistry
from nexus_agents.services.turn_engine import TurnEngine, TurnRequest

logger = logging.getLogger(__name__)

DOCUMENT_EDITOR_ID = "document-editor-agent"
SESSION_MANAGER_ID = "session-manager-agent"


@dataclass
class AgentResponse:
    """stream() folded into one object."""
    success: bool
    content: str = ""
    tool_calls: list[dict] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    error: dict | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "content": self.content,
            "tool_calls": self.tool_calls,
            "metadata": self.metadata,
            "error": self.error,
        }


def collect_chunks(chunks: list[AgentChunk]) -> AgentResponse:
    """Fold an ordered chunk list into an AgentResponse."""
    response = AgentResponse(success=True)
    parts: list[str] = []
    for chunk in chunks:
        if chunk.type == ChunkType.CONTENT:
            parts.append(chunk.data)
        elif chunk.type == ChunkType.TOOL_CALL:
            response.tool_calls.append(chunk.data)
        elif chunk.type == ChunkType.METADATA:
            response.metadata.update(chunk.data)
        elif chunk.type == ChunkType.ERROR:
            response.success = False
            response.error = chunk.data
    response.content = "".join(parts)
    return response


class Agent:
    """Named capability set driven by a TurnEngine."""

    def __init__(
        self,
        agent_id: str,
        name: str,
        description: str,
        engine: TurnEngine,
        version: str = "1.0.0",
        is_premium: bool = False,
    ):
        self.agent_id = agent_id
        self.name = name
        self.description = description
        self.engine = engine
        self.version = version
        self.is_premium = is_premium

    @property
    def registry(self) -> CapabilityRegistry:
        return self.engine.registry

    @property
    def system_prompt(self) -> str:
        return self.engine.system_prompt

    @property
    def model(self) -> str:
        return self.engine.model

    @property
    def capabilities(self) -> list[str]:
        return self.registry.identifiers()

    def can_execute(self, context: ExecutionContext | None) -> bool:
        if not self.is_premium:
            return True
        return context is not None and context.is_premium

    def stream(self, request: TurnRequest) -> AsyncIterator[AgentChunk]:
        return self.engine.stream(request)

    async def execute(self, request: TurnRequest) -> AgentResponse:
        chunks = [chunk async for chunk in self.stream(request)]
        return collect_chunks(chunks)

    def metadata(self) -> dict:
        return {
            "id": self.agent_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "is_premium": self.is_premium,
            "model": self.model,
            "capabilities": self.capabilities,
        }


class AgentDirectory:
    def __init__(self):
        self._agents: dict[str, Agent] = {}

    def register(self, agent: Agent) -> None:
        if agent.agent_id in self._agents:
            raise ValueError(f"Agent '{agent.agent_id}' is already registered")
        self._agents[agent.agent_id] = agent
        logger.info(
            "Agent registered (%d tools)", len(agent.registry),
            extra={"agent_id": agent.agent_id},
        )

    def resolve(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise ResourceNotFoundError("Agent", agent_id)
        return agent

    def list_metadata(self) -> list[dict]:
        return [a.metadata() for a in self._agents.values()]

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)


def build_agent_directory(
    settings: Settings,
    reasoning_model: ReasoningModel,
    generator: ContentGenerator,
    messages: MessageStore,
    documents: DocumentStore,
    prices: PriceTable,
) -> AgentDirectory:
    """Wire both agents with frozen registries."""
    engine_kwargs = dict(
        reasoning_model=reasoning_model,
        prices=prices,
        model=settings.agent_model,
        message_store=messages,
        max_turns=settings.agent_max_turns,
        model_timeout_seconds=settings.model_timeout_seconds,
        tool_timeout_seconds=settings.tool_timeout_seconds,
        buffer_size=settings.chunk_buffer_size,
    )
    editor_registry = CapabilityRegistry(
        EditorHandlers(documents, generator).tools(),
    ).freeze()
    session_registry = CapabilityRegistry(
        SessionHandlers(messages).tools(),
    ).freeze()

    directory = AgentDirectory()
    directory.register(Agent(
        DOCUMENT_EDITOR_ID, "Document Editor",
        "Creates, edits, formats and clears documents on request.",
        TurnEngine(
            registry=editor_registry, system_prompt=DOCUMENT_EDITOR_PROMPT,
            agent_id=DOCUMENT_EDITOR_ID, agent_name="Document Editor",
            **engine_kwargs,
        ),
    ))
    directory.register(Agent(
        SESSION_MANAGER_ID, "Session Manager",
        "Answers questions about past conversations, token usage and cost.",
        TurnEngine(
            registry=session_registry, system_prompt=SESSION_MANAGER_PROMPT,
            agent_id=SESSION_MANAGER_ID, agent_name="Session Manager",
            **engine_kwargs,
        ),
    ))
    return directory


# Singleton (initialized on startup)
_directory: AgentDirectory | None = None


def init_agents(directory: AgentDirectory) -> AgentDirectory:
    global _directory
    _directory = directory
    return directory


def get_agent_directory() -> AgentDirectory:
    if _directory is None:
        raise RuntimeError("Agent directory not initialized")
    return _directory
