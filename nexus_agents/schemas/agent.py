"""Agent Schemas — Pydantic models for the agent and chat REST boundary.

Invariants:
    - message is non-empty and bounded (10k chars)
    - metadata is an open bag; only metadata["premium"] is True grants premium
    - Responses mirror AgentResponse / IntentResponse .to_dict() shapes

Design Decisions:
    - Request bodies validated here; domain objects (ExecutionContext,
      TurnRequest, IntentRequest) built by the route from the validated body
"""

from typing import Any

from pydantic import BaseModel, Field

from nexus_agents.core.domain_types import Intent


class AgentRequestBody(BaseModel):
    message: str = Field(..., min_length=1, max_length=10_000)
    session_id: str | None = Field(None, max_length=100)
    user_id: str | None = None
    project_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AgentInfo(BaseModel):
    id: str
    name: str
    description: str
    version: str
    is_premium: bool
    model: str
    capabilities: list[str]


class AgentExecuteResponse(BaseModel):
    success: bool
    content: str
    tool_calls: list[dict[str, Any]]
    metadata: dict[str, Any]
    error: dict[str, Any] | None = None


class ChatRequestBody(BaseModel):
    message: str = Field(..., min_length=1, max_length=10_000)
    session_id: str | None = Field(None, max_length=100)
    document_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class UsageSummary(BaseModel):
    input_tokens: int
    output_tokens: int
    total_tokens: int
    estimated_cost_usd: float
    model: str


class ChatResponse(BaseModel):
    session_id: str
    response: str
    intent: Intent
    document_updated: bool
    document_id: str | None = None
    tool_call: dict[str, Any] | None = None
    usage: UsageSummary
    error_code: str | None = None
