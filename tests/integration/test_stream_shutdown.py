"""
Integration tests for stream sessions over real websocket connections.

A local websockets server stands in for the exchange, so the full path is
exercised: dial, frame reads, keepalive pings, decoding, relay to the event
bus and graceful shutdown.
"""

import asyncio
from decimal import Decimal

import pytest
import websockets

from binance_stream.config import StreamConfig
from binance_stream.core.event_bus import EventBus, EventType
from binance_stream.data.relay import StreamRelay
from binance_stream.data.streams import open_depth_stream, open_kline_stream, open_trade_stream
from binance_stream.data.transport import StreamConnectError


class FakeExchange:
    """Websocket server that sends fixed frames per stream path."""

    def __init__(self, frames_by_path):
        self.frames_by_path = frames_by_path
        self.paths = []

    async def handler(self, websocket, *args):
        request = getattr(websocket, "request", None)
        path = request.path if request is not None else websocket.path
        self.paths.append(path)
        for frame in self.frames_by_path.get(path, []):
            await websocket.send(frame)
        await websocket.wait_closed()


async def serve(exchange):
    server = await websockets.serve(exchange.handler, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    config = StreamConfig(
        mainnet_url=f"ws://127.0.0.1:{port}/ws",
        ping_interval=0.05,
        shutdown_grace=0.5,
        open_timeout=2.0,
    )
    return server, config


async def stop_server(server):
    server.close()
    await server.wait_closed()


class TestLiveStreams:

    @pytest.mark.asyncio
    async def test_depth_stream_over_websocket(self, depth_frame):
        exchange = FakeExchange({"/ws/bnbbtc@depth": [depth_frame]})
        server, config = await serve(exchange)
        shutdown = asyncio.Event()

        try:
            session = await open_depth_stream("BNBBTC", shutdown, config)
            update = await asyncio.wait_for(session.events.receive(), timeout=2.0)
            await asyncio.sleep(0.2)

            shutdown.set()
            await asyncio.wait_for(session.wait_closed(), timeout=2.0)
        finally:
            await stop_server(server)

        assert exchange.paths == ["/ws/bnbbtc@depth"]
        assert update.bids[0].price == Decimal("0.0024")
        assert session.monitor.pings_sent >= 2
        assert session.connection.closed
        assert session.done.is_set()

    @pytest.mark.asyncio
    async def test_shared_shutdown_stops_every_session(self, kline_frame, trade_frame):
        """Test that one shutdown signal stops all sessions within the grace period."""
        exchange = FakeExchange({
            "/ws/btcusdt@kline_1m": [kline_frame],
            "/ws/btcusdt@trade": [trade_frame],
        })
        server, config = await serve(exchange)
        shutdown = asyncio.Event()

        bus = EventBus()
        closed_sources = []

        async def on_closed(event):
            closed_sources.append(event.source)

        bus.subscribe(EventType.STREAM_CLOSED, on_closed)
        await bus.start()

        try:
            kline_session = await open_kline_stream("BTCUSDT", "1m", shutdown, config)
            trade_session = await open_trade_stream("BTCUSDT", shutdown, config)
            relays = [
                asyncio.create_task(StreamRelay(session, bus).run())
                for session in (kline_session, trade_session)
            ]
            await asyncio.sleep(0.1)

            loop = asyncio.get_running_loop()
            started = loop.time()
            shutdown.set()
            await asyncio.wait_for(
                asyncio.gather(
                    kline_session.wait_closed(), trade_session.wait_closed(), *relays
                ),
                timeout=2.0,
            )
            elapsed = loop.time() - started
            await bus.stop()
        finally:
            await stop_server(server)

        assert elapsed < config.shutdown_grace
        assert sorted(closed_sources) == ["btcusdt@kline_1m", "btcusdt@trade"]
        assert kline_session.done.is_set() and trade_session.done.is_set()

    @pytest.mark.asyncio
    async def test_malformed_frame_ends_only_that_session(self, trade_frame):
        exchange = FakeExchange({
            "/ws/bnbbtc@trade": [trade_frame.replace('"p":"0.001"', '"p":"abc"')]
        })
        server, config = await serve(exchange)
        shutdown = asyncio.Event()

        try:
            session = await open_trade_stream("BNBBTC", shutdown, config)
            received = [event async for event in session.events]
            await asyncio.wait_for(session.wait_closed(), timeout=2.0)
        finally:
            await stop_server(server)

        assert received == []
        assert session.done.is_set()
        assert not shutdown.is_set()


class TestDialFailure:

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self):
        exchange = FakeExchange({})
        server, config = await serve(exchange)
        await stop_server(server)

        with pytest.raises(StreamConnectError):
            await open_trade_stream("BTCUSDT", asyncio.Event(), config)
