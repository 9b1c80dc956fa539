"""
Relay from a stream session to the event bus.

The relay is the session's single channel consumer. Publishing waits while the
bus queue is full, so slow subscribers stall the relay, which in turn stalls
the session's read loop through its channel.
"""

from loguru import logger

from binance_stream.core.event_bus import Event, EventBus, EventType

from .session import StreamSession


class StreamRelay:
    """
    Publish every event of a session on an EventBus.

    After the session's channel closes, one STREAM_CLOSED event is published
    with the session name as source.

    Attributes:
        relayed (int): Number of stream events published so far

    Examples:
        >>> bus = EventBus()
        >>> await bus.start()
        >>> session = await open_trade_stream("BTCUSDT", shutdown)
        >>> relay_task = asyncio.create_task(StreamRelay(session, bus).run())
    """

    def __init__(self, session: StreamSession, event_bus: EventBus):
        if not isinstance(event_bus, EventBus):
            raise TypeError(
                f"event_bus must be EventBus instance, got {type(event_bus).__name__}"
            )

        self.session = session
        self.event_bus = event_bus
        self.relayed = 0

    async def run(self) -> None:
        """Relay until the session's channel is closed and drained."""
        source = self.session.name

        async for payload in self.session.events:
            await self.event_bus.publish(
                Event(EventType.for_payload(payload), payload, source)
            )
            self.relayed += 1

        logger.info(f"Stream {source} closed after relaying {self.relayed} event(s)")
        await self.event_bus.publish(Event(EventType.STREAM_CLOSED, None, source))

    def __repr__(self) -> str:
        return f"StreamRelay({self.session.name}, relayed={self.relayed})"
