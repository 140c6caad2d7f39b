import asyncio

from orion.consumers.base import Consumer, ConsumerHandle
from orion.errors import ConsumerGoneError
from orion.protocol.events import RelayMessage


class QueueConsumer(Consumer):
    """In-process consumer that buffers messages in an asyncio queue.

    Once closed, further deliveries raise ConsumerGoneError.
    """

    def __init__(self, handle: ConsumerHandle, maxsize: int = 0) -> None:
        self._handle = handle
        self.queue: asyncio.Queue[RelayMessage] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    @property
    def handle(self) -> ConsumerHandle:
        return self._handle

    async def deliver(self, message: RelayMessage) -> None:
        if self.closed:
            raise ConsumerGoneError(f"Consumer {self._handle!r} is closed")
        await self.queue.put(message)

    async def get(self, timeout: float | None = None) -> RelayMessage:
        """Wait for the next delivered message."""
        return await asyncio.wait_for(self.queue.get(), timeout)

    def close(self) -> None:
        self.closed = True
