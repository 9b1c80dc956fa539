"""
Stream factories, one per topic.

Each factory builds the topic's stream path, selects its decoder and opens a
StreamSession. All topics share the session engine and liveness monitor.

Examples:
    >>> shutdown = asyncio.Event()
    >>> depth = await open_depth_stream("BTCUSDT", shutdown)
    >>> trades = await open_trade_stream("ETHUSDT", shutdown)
    >>> # ... consume depth.events and trades.events ...
    >>> shutdown.set()
"""

import asyncio
from typing import Optional, Union

from binance_stream.config import StreamConfig
from binance_stream.core.models import Interval, StreamTopic

from .decoder import decoder_for
from .session import Dialer, StreamSession, open_stream
from .transport import dial


def _normalize_symbol(symbol: str) -> str:
    normalized = symbol.strip().lower() if isinstance(symbol, str) else ""
    if not normalized:
        raise ValueError("symbol must be non-empty string")
    return normalized


async def _open_topic(
    topic: StreamTopic,
    path: str,
    shutdown: asyncio.Event,
    config: Optional[StreamConfig],
    dialer: Dialer
) -> StreamSession:
    config = config or StreamConfig()
    decoder = decoder_for(topic, emit_execution_reports=config.emit_execution_reports)
    return await open_stream(topic, path, decoder, shutdown, config=config, dialer=dialer)


async def open_depth_stream(
    symbol: str,
    shutdown: asyncio.Event,
    config: Optional[StreamConfig] = None,
    dialer: Dialer = dial
) -> StreamSession:
    """
    Open an order book delta stream (``<symbol>@depth``).

    Raises:
        ValueError: If symbol is empty
        StreamConnectError: If the connection cannot be established
    """
    path = f"{_normalize_symbol(symbol)}@depth"
    return await _open_topic(StreamTopic.DEPTH, path, shutdown, config, dialer)


async def open_kline_stream(
    symbol: str,
    interval: Union[str, Interval],
    shutdown: asyncio.Event,
    config: Optional[StreamConfig] = None,
    dialer: Dialer = dial
) -> StreamSession:
    """
    Open a candlestick stream (``<symbol>@kline_<interval>``).

    Args:
        symbol (str): Trading pair (e.g. 'BTCUSDT')
        interval (str | Interval): Kline interval (e.g. '1m', '1h', '1M')

    Raises:
        ValueError: If symbol is empty or interval is not a kline interval
        StreamConnectError: If the connection cannot be established
    """
    try:
        interval = Interval(interval)
    except ValueError:
        raise ValueError(
            f"interval must be one of {[i.value for i in Interval]}, got {interval!r}"
        )

    path = f"{_normalize_symbol(symbol)}@kline_{interval.value}"
    return await _open_topic(StreamTopic.KLINE, path, shutdown, config, dialer)


async def open_agg_trade_stream(
    symbol: str,
    shutdown: asyncio.Event,
    config: Optional[StreamConfig] = None,
    dialer: Dialer = dial
) -> StreamSession:
    """Open an aggregated trade stream (``<symbol>@aggTrade``)."""
    path = f"{_normalize_symbol(symbol)}@aggTrade"
    return await _open_topic(StreamTopic.AGG_TRADE, path, shutdown, config, dialer)


async def open_trade_stream(
    symbol: str,
    shutdown: asyncio.Event,
    config: Optional[StreamConfig] = None,
    dialer: Dialer = dial
) -> StreamSession:
    """Open a raw trade stream (``<symbol>@trade``)."""
    path = f"{_normalize_symbol(symbol)}@trade"
    return await _open_topic(StreamTopic.TRADE, path, shutdown, config, dialer)


async def open_user_data_stream(
    stream_key: str,
    shutdown: asyncio.Event,
    config: Optional[StreamConfig] = None,
    dialer: Dialer = dial
) -> StreamSession:
    """
    Open an account update stream for a stream key.

    The key is obtained out-of-band, e.g. with create_stream_key(). Execution
    reports are published only when ``config.emit_execution_reports`` is set.

    Raises:
        ValueError: If stream_key is empty
        StreamConnectError: If the connection cannot be established
    """
    if not isinstance(stream_key, str) or not stream_key.strip():
        raise ValueError("stream_key must be non-empty string")
    return await _open_topic(StreamTopic.ACCOUNT_UPDATE, stream_key.strip(), shutdown, config, dialer)
