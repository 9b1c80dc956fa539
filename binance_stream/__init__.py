"""
Binance Stream - typed real-time event streams from Binance websockets

This package opens Binance market and account websocket streams and
republishes each frame as a typed, decoded event to local consumers.

Modules:
    core: Event models and the event bus
    data: Stream sessions, decoders, transport and per-topic factories
    config: YAML settings and API credentials
"""

__version__ = "0.1.0"
__author__ = "Binance Stream Team"
