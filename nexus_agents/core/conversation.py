"""Conversation Log — vendor-neutral blocks, messages, and the append-only log.

Invariants:
    - ConversationLog is append-only; messages are never edited or removed
    - The log is the only carrier of cross-turn state inside one request
    - Tool results for one assistant message are appended as a single user
      message, ordered exactly like the originating tool-call requests
    - ModelResponse.blocks preserves the order the model produced them in

Design Decisions:
    - Frozen dataclasses over SDK types: the core never imports a vendor SDK;
      infrastructure adapters translate to/from the wire format
    - system framing kept beside the messages (not as a message) because most
      reasoning APIs take it as a separate parameter
"""

from dataclasses import dataclass, field
from typing import Iterable, Union

from nexus_agents.core.domain_types import MessageRole
from nexus_agents.core.usage_ledger import RoundUsage


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    call_id: str
    tool_name: str
    input: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    call_id: str
    content: str
    is_error: bool = False


Block = Union[TextBlock, ToolCallRequest, ToolResult]


@dataclass(frozen=True)
class Message:
    role: MessageRole
    blocks: tuple[Block, ...]

    @classmethod
    def user_text(cls, text: str) -> "Message":
        return cls(MessageRole.USER, (TextBlock(text),))


@dataclass(frozen=True)
class ModelResponse:
    """One reasoning-model reply: ordered text and tool-call blocks plus usage."""
    blocks: tuple[TextBlock | ToolCallRequest, ...]
    usage: RoundUsage
    stop_reason: str | None = None

    @property
    def text_blocks(self) -> list[TextBlock]:
        return [b for b in self.blocks if isinstance(b, TextBlock)]

    @property
    def tool_call_requests(self) -> list[ToolCallRequest]:
        return [b for b in self.blocks if isinstance(b, ToolCallRequest)]

    @property
    def has_tool_calls(self) -> bool:
        return any(isinstance(b, ToolCallRequest) for b in self.blocks)

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.text_blocks)

    @property
    def model(self) -> str:
        return self.usage.model


@dataclass(frozen=True)
class ConversationTurn:
    """Record of one round-trip, kept for the request's lifetime only."""
    number: int
    response: ModelResponse
    tool_results: tuple[ToolResult, ...] = ()


class ConversationLog:
    """Append-only message log for a single request."""

    def __init__(self, system: str, messages: Iterable[Message] = ()):
        self._system = system
        self._messages: list[Message] = list(messages)

    @property
    def system(self) -> str:
        return self._system

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def append_assistant(self, response: ModelResponse) -> None:
        self.append(Message(MessageRole.ASSISTANT, tuple(response.blocks)))

    def append_tool_results(self, results: Iterable[ToolResult]) -> None:
        blocks = tuple(results)
        if blocks:
            self.append(Message(MessageRole.USER, blocks))

    @property
    def turn_count(self) -> int:
        return sum(1 for m in self._messages if m.role == MessageRole.ASSISTANT)
