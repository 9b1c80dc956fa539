"""
Command line entry point: print a Binance stream as JSON lines.

Usage:
    python -m binance_stream depth BTCUSDT
    python -m binance_stream kline BTCUSDT --interval 1m
    python -m binance_stream user --stream-key <key>
    python -m binance_stream --config config.yaml --log-level DEBUG trade ETHUSDT

Press Ctrl+C (or send SIGTERM) to shut the stream down gracefully.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from binance_stream.config import StreamConfig, StreamConfigError, StreamCredentialError, load_config
from binance_stream.data.listen_key import StreamKeyError, close_stream_key, create_stream_key
from binance_stream.data.session import StreamSession
from binance_stream.data.streams import (
    open_agg_trade_stream,
    open_depth_stream,
    open_kline_stream,
    open_trade_stream,
    open_user_data_stream,
)
from binance_stream.data.transport import StreamConnectError

TOPICS = ("depth", "kline", "agg-trade", "trade", "user")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="binance_stream",
        description="Print decoded Binance stream events as JSON lines"
    )
    parser.add_argument("--config", help="Path to config.yaml (defaults to project root)")
    parser.add_argument("--log-level", help="Override the configured log level")
    parser.add_argument("topic", choices=TOPICS, help="Stream topic")
    parser.add_argument("symbol", nargs="?", help="Trading pair, e.g. BTCUSDT")
    parser.add_argument("--interval", default="1m", help="Kline interval (default: 1m)")
    parser.add_argument(
        "--stream-key",
        help="User data stream key; created through the REST API when omitted"
    )
    return parser


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


async def open_session(
    args: argparse.Namespace,
    shutdown: asyncio.Event,
    config: StreamConfig
) -> StreamSession:
    """Open the stream selected on the command line."""
    if args.topic == "user":
        return await open_user_data_stream(args.stream_key, shutdown, config)

    factories = {
        "depth": open_depth_stream,
        "agg-trade": open_agg_trade_stream,
        "trade": open_trade_stream,
    }
    if args.topic == "kline":
        return await open_kline_stream(args.symbol, args.interval, shutdown, config)
    return await factories[args.topic](args.symbol, shutdown, config)


async def run(args: argparse.Namespace, config: StreamConfig) -> int:
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    created_key = None
    if args.topic == "user" and not args.stream_key:
        args.stream_key = created_key = await create_stream_key(config)

    try:
        session = await open_session(args, shutdown, config)
        async for event in session.events:
            print(event.model_dump_json(), flush=True)
        await session.wait_closed()
    finally:
        if created_key:
            await close_stream_key(created_key, config)

    logger.info(
        f"Stream {session.name} finished: {session.frames_received} frame(s), "
        f"{session.events_published} event(s)"
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.topic != "user" and not args.symbol:
        parser.error(f"topic '{args.topic}' requires a symbol")

    load_dotenv(override=False)

    try:
        config = load_config(args.config)
    except StreamConfigError as e:
        if args.config:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        config = StreamConfig()

    configure_logging(args.log_level or config.log_level)

    try:
        return asyncio.run(run(args, config))
    except (StreamConnectError, StreamCredentialError, StreamKeyError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
