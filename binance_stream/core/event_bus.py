"""
Event bus for fanning decoded stream events out to local consumers.

A StreamSession hands events to exactly one consumer through its channel.
When several components want the same events, a StreamRelay drains the
channel and publishes each event here; subscribers register per EventType.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from loguru import logger

from .models import (
    AggTradeUpdate,
    BalanceSnapshot,
    DepthUpdate,
    ExecutionReport,
    KlineUpdate,
    StreamEvent,
    TradeUpdate,
)


class EventType(Enum):
    """
    Kinds of events published on the bus.

    Examples:
        >>> EventType.KLINE_UPDATE.value
        'kline_update'
    """

    DEPTH_UPDATE = "depth_update"
    KLINE_UPDATE = "kline_update"
    AGG_TRADE = "agg_trade"
    TRADE = "trade"
    BALANCE_SNAPSHOT = "balance_snapshot"
    EXECUTION_REPORT = "execution_report"
    STREAM_CLOSED = "stream_closed"
    """Published once by a relay when its session's channel has closed."""

    def __str__(self) -> str:
        return self.name

    @classmethod
    def for_payload(cls, payload: StreamEvent) -> "EventType":
        """
        Map a decoded stream event to its bus event type.

        Raises:
            TypeError: If the payload is not a known stream event
        """
        for model, event_type in _PAYLOAD_TYPES:
            if isinstance(payload, model):
                return event_type
        raise TypeError(f"No event type for payload {type(payload).__name__}")


_PAYLOAD_TYPES = (
    (DepthUpdate, EventType.DEPTH_UPDATE),
    (KlineUpdate, EventType.KLINE_UPDATE),
    (AggTradeUpdate, EventType.AGG_TRADE),
    (TradeUpdate, EventType.TRADE),
    (BalanceSnapshot, EventType.BALANCE_SNAPSHOT),
    (ExecutionReport, EventType.EXECUTION_REPORT),
)


@dataclass
class Event:
    """
    Envelope for one bus event.

    Attributes:
        event_type (EventType): Kind of event
        payload (StreamEvent, optional): Decoded stream event; None for
                                         STREAM_CLOSED
        source (str): Stream that produced the event (e.g. 'btcusdt@depth')
        timestamp (datetime): When the envelope was created (UTC)
    """

    event_type: EventType
    payload: Optional[StreamEvent]
    source: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not isinstance(self.event_type, EventType):
            raise TypeError(
                f"event_type must be EventType enum, got {type(self.event_type).__name__}"
            )
        if self.payload is not None and not isinstance(self.payload, StreamEvent):
            raise TypeError(
                f"payload must be StreamEvent or None, got {type(self.payload).__name__}"
            )

    def __str__(self) -> str:
        return f"Event({self.event_type.name} from {self.source} at {self.timestamp})"


Handler = Callable[[Event], object]


class EventBus:
    """
    Asynchronous publish/subscribe bus.

    Published events are queued and dispatched by a background task started
    with start(). Handlers may be coroutine functions or plain callables;
    plain callables run in a worker thread. Each handler call is limited to
    ``handler_timeout`` seconds and a failing handler does not affect others.

    The queue holds at most ``max_queue_size`` events. publish() waits for
    room, so slow handlers slow the publisher down instead of growing the
    queue.

    Examples:
        >>> bus = EventBus()
        >>> bus.subscribe(EventType.TRADE, on_trade)
        >>> await bus.start()
        >>> await bus.publish(Event(EventType.TRADE, trade, "btcusdt@trade"))
        >>> await bus.stop()
    """

    def __init__(self, handler_timeout: float = 1.0, max_queue_size: int = 1000):
        if max_queue_size < 1:
            raise ValueError(f"max_queue_size must be >= 1, got {max_queue_size}")

        self.handler_timeout = handler_timeout
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[EventType, List[Handler]] = {
            event_type: [] for event_type in EventType
        }
        self._queue: Optional[asyncio.Queue] = None
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def subscribe(self, event_type: EventType, callback: Handler) -> None:
        """
        Register a handler for an event type. Registering twice is a no-op.

        Raises:
            TypeError: If event_type is not an EventType member
        """
        if not isinstance(event_type, EventType):
            raise TypeError(f"event_type must be EventType enum, got {type(event_type)}")

        if callback not in self._subscribers[event_type]:
            self._subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: EventType, callback: Handler) -> None:
        if callback in self._subscribers[event_type]:
            self._subscribers[event_type].remove(callback)

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers[event_type])

    async def publish(self, event: Event) -> None:
        """
        Queue an event for dispatch, waiting while the queue is full.

        Raises:
            TypeError: If event is not an Event
            RuntimeError: If the bus has not been started
        """
        if not isinstance(event, Event):
            raise TypeError(f"event must be Event instance, got {type(event)}")

        if self._queue is None:
            raise RuntimeError("Event bus not started. Call start() first.")

        await self._queue.put(event)

    async def start(self) -> None:
        """Start the dispatch task. Does nothing if already running."""
        if self._running:
            return

        # Queue is bound to the running loop
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._running = True
        self._task = asyncio.create_task(self._process_events())

    async def _process_events(self) -> None:
        while True:
            event = None
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.1)
                await self._dispatch(event)
            except asyncio.TimeoutError:
                if not self._running and self._queue.empty():
                    break
            except Exception as e:
                logger.error(f"Error processing event: {e}")
            finally:
                if event is not None:
                    self._queue.task_done()

    async def _dispatch(self, event: Event) -> None:
        handlers = list(self._subscribers[event.event_type])
        logger.debug(
            f"Dispatching {event.event_type.value} from {event.source} "
            f"to {len(handlers)} handler(s)"
        )

        for callback in handlers:
            name = getattr(callback, "__name__", repr(callback))
            try:
                if asyncio.iscoroutinefunction(callback):
                    await asyncio.wait_for(callback(event), timeout=self.handler_timeout)
                else:
                    await asyncio.wait_for(
                        asyncio.to_thread(callback, event),
                        timeout=self.handler_timeout
                    )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Handler {name} for {event.event_type.value} "
                    f"exceeded {self.handler_timeout}s timeout"
                )
            except Exception as e:
                logger.error(
                    f"Error in event subscriber {name} for {event.event_type.value}: {e}"
                )

    async def stop(self) -> None:
        """
        Stop dispatching after the queued events have been handled.

        Waits up to 5 seconds for the queue to drain.
        """
        if not self._running:
            return

        self._running = False

        try:
            await asyncio.wait_for(self._queue.join(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Event queue did not drain within 5s timeout")

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def queue_size(self) -> int:
        if self._queue is None:
            return 0
        return self._queue.qsize()
