"""Chunk Channel — ordered, lossless producer/consumer stream of AgentChunks.

Invariants:
    - Chunks are delivered in exactly the order they were sent
    - No chunk is ever dropped: maxsize=0 is unbounded, maxsize>0 blocks the
      producer until the consumer catches up (backpressure)
    - After disconnect() every send() raises ChannelClosedError; the producer
      treats that as "stop working", not as an application error
    - close() is idempotent and ends iteration after all buffered chunks

Design Decisions:
    - asyncio.Queue + sentinel over a custom ring buffer: no busy polling,
      suspension handled by the event loop
    - Consumer disconnect signalled through the channel itself so the turn
      engine can check it before each model call
"""

import asyncio

from nexus_agents.core.chunks import AgentChunk

_END = object()


class ChannelClosedError(Exception):
    """Raised to the producer when the consumer has gone away."""


class ChunkChannel:
    """Single-producer, single-consumer chunk queue."""

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._disconnected = False
        self._sent = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    @property
    def sent_count(self) -> int:
        return self._sent

    async def send(self, chunk: AgentChunk) -> None:
        if self._closed or self._disconnected:
            raise ChannelClosedError("chunk channel is closed")
        await self._queue.put(chunk)
        self._sent += 1

    async def close(self) -> None:
        """Producer side: no more chunks will follow."""
        if self._closed:
            return
        self._closed = True
        if not self._disconnected:
            await self._queue.put(_END)

    def disconnect(self) -> None:
        """Consumer side: stop accepting chunks, drop the backlog."""
        self._disconnected = True
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()

    def __aiter__(self):
        return self

    async def __anext__(self) -> AgentChunk:
        if self._disconnected:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            raise StopAsyncIteration
        return item
