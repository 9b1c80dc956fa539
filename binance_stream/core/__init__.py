"""
Core module for decoded stream events.

- models: Typed stream events, StreamTopic and Interval
- event_bus: Publish-subscribe fan-out of stream events
"""

from .event_bus import Event, EventBus, EventType
from .models import (
    AccountUpdate,
    AggTradeUpdate,
    Balance,
    BalanceSnapshot,
    DepthUpdate,
    ExecutionReport,
    Interval,
    KlineUpdate,
    PriceLevel,
    StreamEvent,
    StreamTopic,
    TradeUpdate,
)

__all__ = [
    "AccountUpdate",
    "AggTradeUpdate",
    "Balance",
    "BalanceSnapshot",
    "DepthUpdate",
    "Event",
    "EventBus",
    "EventType",
    "ExecutionReport",
    "Interval",
    "KlineUpdate",
    "PriceLevel",
    "StreamEvent",
    "StreamTopic",
    "TradeUpdate",
]
