"""
Data module for real-time stream sessions.

This module handles:
- Websocket connections to Binance streams
- Frame decoding into typed events
- Keepalive pings and cooperative shutdown
- Per-topic stream factories
"""

from .channel import ChannelClosed, EventChannel
from .decoder import FieldConversionError, FrameDecodeError, decoder_for
from .session import StreamSession, open_stream
from .streams import (
    open_agg_trade_stream,
    open_depth_stream,
    open_kline_stream,
    open_trade_stream,
    open_user_data_stream,
)
from .transport import StreamConnectError, StreamTransportError

__all__ = [
    "ChannelClosed",
    "EventChannel",
    "FieldConversionError",
    "FrameDecodeError",
    "StreamConnectError",
    "StreamSession",
    "StreamTransportError",
    "decoder_for",
    "open_agg_trade_stream",
    "open_depth_stream",
    "open_kline_stream",
    "open_stream",
    "open_trade_stream",
    "open_user_data_stream",
]
