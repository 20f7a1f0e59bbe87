"""Bounded channel carrying progress events from a turn to its relay."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from familiar.types.messages import AgentEvent

logger = logging.getLogger(__name__)

DEFAULT_BUFFER = 64


class EventChannel:
    """A single-producer, single-consumer event queue.

    Text chunks are best effort: :meth:`send_nowait` drops them when the
    buffer is full rather than stall the model stream. Actions and terminal
    events go through :meth:`send`, which waits for room.
    """

    def __init__(self, max_buffer_size: int = DEFAULT_BUFFER) -> None:
        send, receive = anyio.create_memory_object_stream(max_buffer_size)
        self._send: MemoryObjectSendStream[AgentEvent] = send
        self._receive: MemoryObjectReceiveStream[AgentEvent] = receive
        self.dropped = 0

    def send_nowait(self, event: AgentEvent) -> bool:
        """Queue *event* if there is room. Returns False when it was dropped."""
        try:
            self._send.send_nowait(event)
        except anyio.WouldBlock:
            self.dropped += 1
            logger.debug("Event buffer full, dropped %s", type(event).__name__)
            return False
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug("Event channel closed, dropped %s", type(event).__name__)
            return False
        return True

    async def send(self, event: AgentEvent) -> None:
        """Queue *event*, waiting for buffer space. A closed receiver is ignored."""
        try:
            await self._send.send(event)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            logger.debug("Event channel closed, dropped %s", type(event).__name__)

    def close(self) -> None:
        """Close the sending side. Buffered events can still be received."""
        self._send.close()

    def close_receiver(self) -> None:
        """Stop receiving; pending and later sends are discarded."""
        self._receive.close()

    async def receive(self) -> AsyncIterator[AgentEvent]:
        """Yield events until the sending side is closed."""
        async for event in self._receive:
            yield event

    def __aiter__(self) -> AsyncIterator[AgentEvent]:
        return self.receive()
