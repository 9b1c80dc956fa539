"""
Websocket transport for stream sessions.

Wraps the ``websockets`` client in the narrow interface the session engine
relies on: read one frame, send a ping control frame, close. Close is
idempotent so that the read loop and the liveness monitor may both call it.

The library's built-in keepalive is disabled; pings are sent by the
LivenessMonitor.
"""

import asyncio
from typing import Optional, Protocol, Union

import websockets
from loguru import logger
from websockets.exceptions import ConnectionClosed, WebSocketException


class StreamConnectError(Exception):
    """
    Raised when a stream connection cannot be established.

    Returned to the caller of a stream factory so it can decide whether to
    retry, back off, or give up on that stream.
    """
    pass


class StreamTransportError(Exception):
    """Raised when reading from or pinging an open connection fails."""
    pass


class Connection(Protocol):
    """Full-duplex message connection used by a stream session."""

    async def read_frame(self) -> Union[str, bytes]:
        ...

    async def ping(self) -> None:
        ...

    async def close(self) -> None:
        ...

    @property
    def closed(self) -> bool:
        ...


class WebsocketConnection:
    """
    Connection backed by a ``websockets`` client protocol.

    Attributes:
        url (str): Stream URL the connection was dialed with
    """

    def __init__(self, websocket, url: str):
        self._websocket = websocket
        self.url = url
        self._closed = False

    async def read_frame(self) -> Union[str, bytes]:
        """
        Block until the next frame arrives.

        Raises:
            StreamTransportError: If the connection is closed or broken
        """
        try:
            return await self._websocket.recv()
        except (ConnectionClosed, WebSocketException, OSError) as e:
            raise StreamTransportError(f"read failed on {self.url}: {e}") from e

    async def ping(self) -> None:
        """
        Send a ping control frame without waiting for the pong.

        Raises:
            StreamTransportError: If the frame cannot be written
        """
        try:
            await self._websocket.ping()
        except (ConnectionClosed, WebSocketException, OSError) as e:
            raise StreamTransportError(f"ping failed on {self.url}: {e}") from e

    async def close(self) -> None:
        """Close the connection. Calls after the first are no-ops."""
        if self._closed:
            return
        self._closed = True

        try:
            await self._websocket.close()
        except (WebSocketException, OSError) as e:
            logger.debug(f"Ignoring error while closing {self.url}: {e}")

    @property
    def closed(self) -> bool:
        return self._closed

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"WebsocketConnection({self.url}, {status})"


async def dial(url: str, open_timeout: Optional[float] = 10.0) -> WebsocketConnection:
    """
    Open a websocket connection to a stream URL.

    Args:
        url (str): Full stream URL (e.g. 'wss://stream.binance.com:9443/ws/btcusdt@trade')
        open_timeout (float, optional): Handshake timeout in seconds

    Returns:
        WebsocketConnection: The open connection

    Raises:
        StreamConnectError: If the connection or handshake fails
    """
    logger.debug(f"Dialing {url}")
    try:
        websocket = await websockets.connect(
            url,
            ping_interval=None,
            open_timeout=open_timeout,
            close_timeout=open_timeout,
        )
    except (OSError, asyncio.TimeoutError, WebSocketException) as e:
        raise StreamConnectError(f"Failed to connect to {url}: {e}") from e

    return WebsocketConnection(websocket, url)
