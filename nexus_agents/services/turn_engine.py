"""Turn Engine — bounded multi-round tool-calling loop streaming AgentChunks.

Invariants:
    - At most max_turns reasoning-model calls per request
    - Reaching the ceiling ends in DONE (ceiling_reached=True), never ABORTED
    - Tool errors never end the loop; only reasoning-model failures abort
    - Token counts from every round are folded, never overwritten; totals
      finalized exactly once per request
    - Assistant message persisted at most once (DONE or ABORTED), never on cancel
    - Nothing escapes run(): every failure becomes an error chunk or a state

Design Decisions:
    - Producer writes to a ChunkChannel; stream() drains it in the caller's
      task, so a slow consumer applies backpressure through the channel
    - Text blocks emitted as content chunks in block order, interleaved with
      tool execution (live consumer sees progress, not a turn-end dump)
    - Tools run sequentially in receipt order: editor handlers mutate the same
      document and are not commutative
    - Consumer disconnect = cancellation: no error chunk, no persistence
    - Pure builders live in turn_engine_helpers.py (keeps this file control flow)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator

from nexus_agents.core.chunks import AgentChunk, content_chunk, tool_call_chunk
from nexus_agents.core.conversation import (
    ConversationLog, ConversationTurn, Message, ModelResponse, TextBlock,
)
from nexus_agents.core.domain_types import EngineState, MessageRole
from nexus_agents.core.errors import (
    ErrorContext, InternalError, NexusError, ReasoningModelError,
)
from nexus_agents.core.execution_context import ExecutionContext
from nexus_agents.core.repository_protocols import MessageStore, ReasoningModel
from nexus_agents.core.tool_records import ToolCallRecord
from nexus_agents.core.usage_ledger import PriceTable, UsageTotals, fold
from nexus_agents.services.chunk_channel import ChannelClosedError, ChunkChannel
from nexus_agents.services.tool_invoker import ToolInvoker
from nexus_agents.services.tool_registry import CapabilityRegistry
from nexus_agents.services.turn_engine_helpers import (
    assistant_meta, complete_chunk, completion_summary, error_chunk_from,
    executing_tool_chunk, persistence_failed_chunk, starting_chunk,
    tool_results_for, turn_complete_chunk,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TurnRequest:
    message: str
    context: ExecutionContext
    history: tuple[Message, ...] = ()


@dataclass
class TurnOutcome:
    """Terminal summary of one request, returned alongside the stream."""
    state: EngineState = EngineState.START
    text: str = ""
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    usage: UsageTotals = field(default_factory=UsageTotals.empty)
    turns: list[ConversationTurn] = field(default_factory=list)
    ceiling_reached: bool = False
    error_message: str | None = None
    message_id: str | None = None


class _Run:
    """Per-request mutable state, owned by exactly one run() call."""

    def __init__(self, request: TurnRequest, system_prompt: str):
        self.request = request
        self.log = ConversationLog(system_prompt, request.history)
        self.log.append(Message.user_text(request.message))
        self.outcome = TurnOutcome()
        self.text_parts: list[str] = []

    @property
    def session_id(self) -> str:
        return self.request.context.session_id


class TurnEngine:
    """Drives Start -> AwaitingModel -> (ExecutingTools -> AwaitingModel)* -> Done | Aborted."""

    def __init__(
        self,
        reasoning_model: ReasoningModel,
        registry: CapabilityRegistry,
        prices: PriceTable,
        model: str,
        system_prompt: str = "",
        message_store: MessageStore | None = None,
        agent_id: str = "agent",
        agent_name: str = "Agent",
        max_turns: int = 10,
        model_timeout_seconds: float = 120.0,
        tool_timeout_seconds: float = 60.0,
        buffer_size: int = 0,
    ):
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.reasoning_model = reasoning_model
        self.registry = registry
        self.invoker = ToolInvoker(registry, tool_timeout_seconds)
        self.prices = prices
        self.model = model
        self.system_prompt = system_prompt
        self.message_store = message_store
        self.agent_id = agent_id
        self.agent_name = agent_name
        self.max_turns = max_turns
        self.model_timeout_seconds = model_timeout_seconds
        self.buffer_size = buffer_size

    # -- Consumer side ---------------------------------------------------------

    async def stream(self, request: TurnRequest) -> AsyncIterator[AgentChunk]:
        """Async generator of chunks. Closing it early cancels the producer."""
        channel = ChunkChannel(self.buffer_size)
        task = asyncio.create_task(self.run(request, channel))
        finished = False
        try:
            async for chunk in channel:
                yield chunk
            finished = True
        finally:
            if finished:
                await task
            else:
                channel.disconnect()
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    # -- Producer side ---------------------------------------------------------

    async def run(self, request: TurnRequest, channel: ChunkChannel) -> TurnOutcome:
        """Produce the full chunk stream into channel. Never raises (except cancel)."""
        run = _Run(request, self.system_prompt)
        try:
            await channel.send(starting_chunk(
                self.agent_id, self.agent_name, run.session_id,
            ))
            await self._loop(run, channel)
        except ChannelClosedError:
            self._mark_cancelled(run)
        except asyncio.CancelledError:
            self._mark_cancelled(run)
            raise
        except Exception as e:
            logger.error(
                "Unexpected error in turn engine: %s", e,
                extra={"session_id": run.session_id, "agent_id": self.agent_id},
                exc_info=True,
            )
            run.outcome.state = EngineState.ABORTED
            run.outcome.error_message = "An unexpected error occurred"
            internal = InternalError(run.outcome.error_message)
            if not channel.closed:
                try:
                    await channel.send(error_chunk_from(internal))
                except ChannelClosedError:
                    self._mark_cancelled(run)
        finally:
            await channel.close()
        return run.outcome

    def _mark_cancelled(self, run: _Run) -> None:
        run.outcome.state = EngineState.CANCELLED
        run.outcome.text = "".join(run.text_parts)
        logger.info(
            "Turn cancelled (consumer disconnect)",
            extra={"session_id": run.session_id, "agent_id": self.agent_id},
        )

    async def _loop(self, run: _Run, channel: ChunkChannel) -> None:
        schemas = self.registry.list_schemas()
        outcome = run.outcome

        for number in range(1, self.max_turns + 1):
            if channel.disconnected:
                raise ChannelClosedError("consumer disconnected")

            outcome.state = EngineState.AWAITING_MODEL
            try:
                response = await self._complete(run, schemas, number)
            except ReasoningModelError as e:
                await self._abort(run, channel, e, number)
                return

            outcome.usage = fold(outcome.usage, response.usage, self.prices)
            logger.info(
                "Model round complete",
                extra={
                    "session_id": run.session_id, "agent_id": self.agent_id,
                    "turn_number": number,
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                },
            )

            if response.has_tool_calls:
                outcome.state = EngineState.EXECUTING_TOOLS
            records = await self._process_blocks(run, channel, response, number)

            results = tool_results_for(records)
            run.log.append_assistant(response)
            run.log.append_tool_results(results)
            outcome.turns.append(ConversationTurn(number, response, tuple(results)))
            await channel.send(turn_complete_chunk(number, outcome.usage))

            if not response.has_tool_calls:
                await self._finish(run, channel)
                return

        logger.warning(
            "Turn ceiling reached",
            extra={
                "session_id": run.session_id, "agent_id": self.agent_id,
                "turn_number": self.max_turns,
            },
        )
        outcome.ceiling_reached = True
        await self._finish(run, channel)

    async def _complete(
        self, run: _Run, schemas: list[dict], number: int,
    ) -> ModelResponse:
        """One reasoning-model call, time-boxed. Failures -> ReasoningModelError."""
        ctx = ErrorContext(
            session_id=run.session_id, agent_id=self.agent_id, turn_number=number,
        )
        try:
            return await asyncio.wait_for(
                self.reasoning_model.complete(run.log, schemas, self.model),
                self.model_timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise ReasoningModelError(
                f"Reasoning model timed out after {self.model_timeout_seconds}s",
                "REASONING_MODEL_TIMEOUT", ctx,
            )
        except ReasoningModelError:
            raise
        except NexusError as e:
            raise ReasoningModelError(e.message, e.code, ctx) from e
        except Exception as e:
            raise ReasoningModelError(
                f"Reasoning model call failed: {e}", context=ctx,
            ) from e

    async def _process_blocks(
        self, run: _Run, channel: ChunkChannel, response: ModelResponse, number: int,
    ) -> list[ToolCallRecord]:
        """Stream text blocks and execute tool calls, both in block order."""
        records: list[ToolCallRecord] = []
        for block in response.blocks:
            if isinstance(block, TextBlock):
                if not block.text:
                    continue
                run.text_parts.append(block.text)
                await channel.send(content_chunk(block.text))
                continue

            await channel.send(executing_tool_chunk(block, number))
            record = await self.invoker.invoke(block, run.request.context)
            records.append(record)
            run.outcome.tool_calls.append(record)
            await channel.send(tool_call_chunk(record))
        return records

    # -- Terminal states -------------------------------------------------------

    async def _finish(self, run: _Run, channel: ChunkChannel) -> None:
        outcome = run.outcome
        outcome.state = EngineState.DONE
        outcome.text = "".join(run.text_parts)
        meta = assistant_meta(
            self.agent_id, outcome.tool_calls, outcome.usage,
            len(outcome.turns), outcome.ceiling_reached,
        )
        await self._persist(run, channel, meta)
        await channel.send(complete_chunk(completion_summary(
            run.session_id, self.agent_id, outcome.tool_calls, outcome.usage,
            len(outcome.turns), outcome.ceiling_reached, outcome.message_id,
        )))

    async def _abort(
        self, run: _Run, channel: ChunkChannel, error: ReasoningModelError, number: int,
    ) -> None:
        outcome = run.outcome
        outcome.state = EngineState.ABORTED
        outcome.text = "".join(run.text_parts)
        outcome.error_message = error.message
        logger.error(
            "Reasoning model failed: %s", error.message,
            extra={
                "session_id": run.session_id, "agent_id": self.agent_id,
                "turn_number": number, "error_code": error.code,
            },
        )
        meta = assistant_meta(
            self.agent_id, outcome.tool_calls, outcome.usage,
            len(outcome.turns), error=error,
        )
        await self._persist(run, channel, meta)
        await channel.send(error_chunk_from(error, usage=outcome.usage.to_dict()))

    async def _persist(self, run: _Run, channel: ChunkChannel, meta: dict) -> None:
        """Save the assistant message. Failure surfaces as metadata, never raises."""
        if self.message_store is None:
            return
        try:
            run.outcome.message_id = await self.message_store.append_message(
                run.session_id, MessageRole.ASSISTANT.value, run.outcome.text, meta,
            )
        except Exception as e:
            logger.error(
                "Failed to persist assistant message: %s", e,
                extra={"session_id": run.session_id, "agent_id": self.agent_id},
            )
            await channel.send(persistence_failed_chunk(str(e)))
