"""
Output channel between a stream session and its consumer.

EventChannel is a single-producer queue with an explicit close:
- capacity 0 (default): rendezvous, send() returns only after a consumer has
  taken the event, so a slow consumer stalls the producer
- capacity N > 0: send() blocks once N events are waiting

Consumers iterate with ``async for`` or call receive(); iteration ends once the
channel is closed and every buffered event has been taken.
"""

import asyncio
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised by receive() once the channel is closed and drained."""
    pass


class EventChannel(Generic[T]):
    """
    Backpressured event channel.

    Examples:
        >>> channel = EventChannel()
        >>> async for event in channel:
        ...     handle(event)
    """

    def __init__(self, capacity: int = 0):
        """
        Args:
            capacity (int): Number of events that may wait for a consumer.
                            0 makes every send wait for a receiver.

        Raises:
            ValueError: If capacity is negative
        """
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")

        self.capacity = capacity
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(capacity, 1))
        self._closed = False
        self._sent = 0
        self._received = 0

    async def send(self, item: T) -> None:
        """
        Send one event, waiting for the consumer as required by the capacity.

        Raises:
            ChannelClosed: If the channel was already closed
        """
        if self._closed:
            raise ChannelClosed("send on closed channel")

        await self._queue.put(item)
        self._sent += 1
        if self.capacity == 0:
            # Single producer: join() returns once this item was taken
            await self._queue.join()

    async def receive(self) -> T:
        """
        Take the next event.

        Raises:
            ChannelClosed: If the channel is closed and no events remain
        """
        if self._closed and self._queue.empty():
            raise ChannelClosed("channel closed")

        item = await self._queue.get()
        self._queue.task_done()

        if item is _CLOSED:
            # Leave the marker for any other waiting receiver
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosed("channel closed")
        self._received += 1
        return item

    def close(self) -> None:
        """Close the channel. Calls after the first are no-ops."""
        if self._closed:
            return
        self._closed = True

        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Buffer is full, so no receiver is blocked; receive() sees _closed
            # once the buffer is drained
            pass

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def sent(self) -> int:
        """Number of events accepted into the channel."""
        return self._sent

    @property
    def pending(self) -> int:
        """Number of events waiting for a consumer."""
        return self._sent - self._received

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        try:
            return await self.receive()
        except ChannelClosed:
            raise StopAsyncIteration

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"EventChannel(capacity={self.capacity}, pending={self.pending}, {status})"
