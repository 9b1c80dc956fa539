"""
Unit tests for StreamRelay.
"""

import asyncio

import pytest

from binance_stream.core.event_bus import EventBus, EventType
from binance_stream.data.relay import StreamRelay
from binance_stream.data.streams import open_trade_stream


class TestStreamRelay:

    @pytest.mark.asyncio
    async def test_requires_event_bus(self, dialer, fast_config):
        shutdown = asyncio.Event()
        session = await open_trade_stream("BNBBTC", shutdown, fast_config, dialer)

        with pytest.raises(TypeError, match="event_bus must be EventBus instance"):
            StreamRelay(session, "not_a_bus")

        shutdown.set()
        await asyncio.wait_for(session.wait_closed(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_relays_events_then_stream_closed(self, dialer, fast_config, trade_frame):
        """Test that trades are published in order followed by STREAM_CLOSED."""
        bus = EventBus()
        received = []

        async def on_event(event):
            received.append(event)

        bus.subscribe(EventType.TRADE, on_event)
        bus.subscribe(EventType.STREAM_CLOSED, on_event)
        await bus.start()

        shutdown = asyncio.Event()
        session = await open_trade_stream("BNBBTC", shutdown, fast_config, dialer)
        relay = StreamRelay(session, bus)
        relay_task = asyncio.create_task(relay.run())

        dialer.connection.feed(trade_frame, trade_frame.replace('"t":12345', '"t":12346'))
        await asyncio.sleep(0.1)
        shutdown.set()
        await asyncio.wait_for(relay_task, timeout=1.0)
        await bus.stop()

        assert relay.relayed == 2
        assert [e.event_type for e in received] == [
            EventType.TRADE, EventType.TRADE, EventType.STREAM_CLOSED
        ]
        assert [e.payload.trade_id for e in received[:2]] == [12345, 12346]
        assert all(e.source == "bnbbtc@trade" for e in received)
        assert received[-1].payload is None

    @pytest.mark.asyncio
    async def test_stalled_handler_stops_frame_reads(self, dialer, fast_config, trade_frame):
        """Test that a blocked subscriber holds back reads from the connection."""
        bus = EventBus(handler_timeout=5.0, max_queue_size=1)
        release = asyncio.Event()

        async def stalled(event):
            await release.wait()

        bus.subscribe(EventType.TRADE, stalled)
        await bus.start()

        shutdown = asyncio.Event()
        session = await open_trade_stream("BNBBTC", shutdown, fast_config, dialer)
        dialer.connection.feed(*[trade_frame] * 200)
        relay = StreamRelay(session, bus)
        relay_task = asyncio.create_task(relay.run())

        await asyncio.sleep(0.3)

        # one event in the handler, one in the bus queue, one held by the
        # relay, one waiting in the rendezvous channel
        assert dialer.connection.frames_read <= 4
        assert dialer.connection.pending_frames >= 196
        assert relay.relayed <= 2

        release.set()
        shutdown.set()
        await asyncio.wait_for(relay_task, timeout=2.0)
        await bus.stop()
