"""
Pytest configuration and shared fixtures for binance_stream tests.

This module provides:
- FakeConnection, an in-memory stand-in for a websocket connection
- A fake dialer that hands out FakeConnection instances
- Sample wire frames for every stream topic
- A loguru sink for asserting on log output
"""

import asyncio
from typing import List

import pytest
from loguru import logger

from binance_stream.config import StreamConfig
from binance_stream.data.transport import StreamTransportError


class FakeConnection:
    """
    In-memory connection.

    Frames queued with feed() are returned by read_frame() in order; an
    Exception instance in the queue is raised instead. read_frame() blocks
    when the queue is empty, like a quiet stream.
    """

    def __init__(self, url: str = "wss://test/ws/stream"):
        self.url = url
        self._frames: asyncio.Queue = asyncio.Queue()
        self.frames_read = 0
        self.pings = 0
        self.close_count = 0
        self.fail_ping = False
        self._closed = False

    def feed(self, *frames) -> None:
        for frame in frames:
            self._frames.put_nowait(frame)

    @property
    def pending_frames(self) -> int:
        return self._frames.qsize()

    async def read_frame(self):
        item = await self._frames.get()
        if isinstance(item, Exception):
            raise item
        self.frames_read += 1
        return item

    async def ping(self) -> None:
        if self.fail_ping or self._closed:
            raise StreamTransportError(f"ping failed on {self.url}")
        self.pings += 1

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.close_count += 1

    @property
    def closed(self) -> bool:
        return self._closed


class FakeDialer:
    """Records dialed URLs and returns one FakeConnection per call."""

    def __init__(self):
        self.urls: List[str] = []
        self.connections: List[FakeConnection] = []
        self.open_timeouts: List[float] = []

    async def __call__(self, url: str, open_timeout: float = 10.0) -> FakeConnection:
        self.urls.append(url)
        self.open_timeouts.append(open_timeout)
        connection = FakeConnection(url)
        self.connections.append(connection)
        return connection

    @property
    def connection(self) -> FakeConnection:
        return self.connections[-1]


@pytest.fixture
def connection():
    """Provide a fresh FakeConnection."""
    return FakeConnection()


@pytest.fixture
def dialer():
    """Provide a FakeDialer."""
    return FakeDialer()


@pytest.fixture
def fast_config():
    """Stream settings with short timings so lifecycle tests run quickly."""
    return StreamConfig(ping_interval=0.05, shutdown_grace=0.2)


@pytest.fixture
def log_messages():
    """Capture loguru output as a list of 'LEVEL message' strings."""
    messages: List[str] = []
    handler_id = logger.add(
        lambda message: messages.append(
            f"{message.record['level'].name} {message.record['message']}"
        ),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def depth_frame():
    return (
        '{"e":"depthUpdate","E":1672515782136,"s":"BNBBTC","U":157,"u":160,'
        '"b":[["0.0024","10"]],"a":[["0.0026","100"]]}'
    )


@pytest.fixture
def kline_frame():
    """Closed one-minute BTCUSDT bar: open 100, high 110, low 90, close 105."""
    return (
        '{"e":"kline","E":1672515782136,"s":"BTCUSDT","k":{'
        '"t":1672515720000,"T":1672515779999,"s":"BTCUSDT","i":"1m",'
        '"f":100,"L":200,"o":"100.0","c":"105.0","h":"110.0","l":"90.0",'
        '"v":"1000","n":100,"x":true,"q":"1.0000","V":"500","Q":"0.500",'
        '"B":"123456"}}'
    )


@pytest.fixture
def agg_trade_frame():
    return (
        '{"e":"aggTrade","E":1672515782136,"s":"BNBBTC","a":12345,"p":"0.001",'
        '"q":"100","f":100,"l":105,"T":1672515782136,"m":true,"M":true}'
    )


@pytest.fixture
def trade_frame():
    return (
        '{"e":"trade","E":1672515782136,"s":"BNBBTC","t":12345,"p":"0.001",'
        '"q":"100","b":88,"a":50,"T":1672515782136,"m":true,"M":true}'
    )


@pytest.fixture
def account_info_frame():
    return (
        '{"e":"outboundAccountInfo","E":1499405658849,"m":0,"t":0,"b":0,"s":0,'
        '"T":true,"W":true,"D":true,"u":1499405658848,"B":['
        '{"a":"LTC","f":"17366.18538083","l":"0.00000000"},'
        '{"a":"BTC","f":"10537.85314051","l":"2.19464093"}]}'
    )


@pytest.fixture
def execution_report_frame():
    return (
        '{"e":"executionReport","E":1499405658658,"s":"ETHBTC",'
        '"c":"mUvoqJxFIILMdfAW5iGSOW","S":"BUY","o":"LIMIT","f":"GTC",'
        '"q":"1.00000000","p":"0.10264410","P":"0.00000000","F":"0.00000000",'
        '"g":-1,"C":"","x":"NEW","X":"NEW","r":"NONE","i":4293153,'
        '"l":"0.00000000","z":"0.00000000","L":"0.00000000","n":"0","N":null,'
        '"T":1499405658657,"t":-1,"I":8641984,"w":true,"m":false,"M":false,'
        '"O":1499405658657,"Z":"0.00000000","Y":"0.00000000","Q":"0.00000000"}'
    )
