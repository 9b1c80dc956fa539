"""
Generic stream session engine.

A StreamSession owns one websocket connection for one stream topic and runs
two asyncio tasks over it:
- the read loop: read a frame, decode it, send the event to the session's
  EventChannel
- the LivenessMonitor: ping periodically, coordinate shutdown

Lifecycle:
    1. open_stream() dials the connection. A dial failure raises
       StreamConnectError to the caller.
    2. Both tasks are started and the session is returned immediately.
    3. The read loop stops on shutdown, on a read error, or on a frame that
       cannot be decoded. It then closes the channel, sets ``done`` and
       closes the connection, in that order.

Errors after open are never raised to the caller. Consumers see termination
as the end of ``async for event in session.events`` and as ``session.done``
being set.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from loguru import logger

from binance_stream.config import StreamConfig
from binance_stream.core.models import StreamEvent, StreamTopic

from .channel import EventChannel
from .decoder import Decoder, FrameDecodeError
from .monitor import LivenessMonitor
from .transport import Connection, StreamTransportError, dial

Dialer = Callable[..., Awaitable[Connection]]

_SHUTDOWN = object()


class StreamSession:
    """
    One live stream: a connection, a read loop, a liveness monitor.

    Attributes:
        topic (StreamTopic): Stream topic
        url (str): Stream URL
        events (EventChannel): Decoded events, in frame order
        done (asyncio.Event): Set once the read loop has permanently stopped
        frames_received (int): Frames read from the connection
        events_published (int): Events accepted by the channel, including
                                ones still waiting for the consumer

    Examples:
        >>> shutdown = asyncio.Event()
        >>> session = await open_kline_stream("BTCUSDT", "1m", shutdown)
        >>> async for kline in session.events:
        ...     print(kline.close)
    """

    def __init__(
        self,
        topic: StreamTopic,
        url: str,
        connection: Connection,
        decoder: Decoder,
        shutdown: asyncio.Event,
        config: Optional[StreamConfig] = None
    ):
        config = config or StreamConfig()

        self.topic = topic
        self.url = url
        self.connection = connection
        self.decoder = decoder
        self.shutdown = shutdown
        self.events: EventChannel[StreamEvent] = EventChannel(config.channel_capacity)
        self.done = asyncio.Event()
        self.monitor = LivenessMonitor(
            connection,
            self.done,
            shutdown,
            ping_interval=config.ping_interval,
            shutdown_grace=config.shutdown_grace,
            name=self.name,
        )
        self.frames_received = 0

        self._reader_task: Optional[asyncio.Task] = None
        self._monitor_task: Optional[asyncio.Task] = None

    @property
    def events_published(self) -> int:
        return self.events.sent

    @property
    def name(self) -> str:
        """Stream path used in log messages (the URL tail)."""
        return self.url.rsplit("/", 1)[-1]

    def start(self) -> None:
        """
        Start the read loop and the liveness monitor.

        Raises:
            RuntimeError: If the session was already started
        """
        if self._reader_task is not None:
            raise RuntimeError(f"Session for {self.name} already started")

        self._reader_task = asyncio.create_task(
            self._read_loop(), name=f"reader:{self.name}"
        )
        self._monitor_task = asyncio.create_task(
            self.monitor.run(), name=f"monitor:{self.name}"
        )

    async def wait_closed(self) -> None:
        """Wait until both the read loop and the monitor have exited."""
        tasks = [t for t in (self._reader_task, self._monitor_task) if t is not None]
        if tasks:
            await asyncio.gather(*tasks)

    async def _read_loop(self) -> None:
        """
        Read, decode and publish frames until shutdown or a fatal error.

        The shutdown signal is checked before every read and also interrupts a
        pending read or send.
        """
        try:
            while True:
                if self.shutdown.is_set():
                    logger.info(f"Closing reader for {self.name}")
                    return

                try:
                    frame = await self._until_shutdown(self.connection.read_frame())
                except StreamTransportError as e:
                    logger.error(f"Read failed for {self.name}: {e}")
                    return
                if frame is _SHUTDOWN:
                    continue
                self.frames_received += 1

                try:
                    event = self.decoder(frame)
                except FrameDecodeError as e:
                    logger.error(f"Failed to decode frame on {self.name}: {e} body={e.frame}")
                    return
                if event is None:
                    continue

                await self._until_shutdown(self.events.send(event))
        finally:
            self.events.close()
            self.done.set()
            await self.connection.close()

    async def _until_shutdown(self, operation: Awaitable):
        """Await ``operation`` unless shutdown is signalled first."""
        pending = asyncio.ensure_future(operation)
        stopper = asyncio.ensure_future(self.shutdown.wait())
        try:
            await asyncio.wait({pending, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (pending, stopper):
                if not task.done():
                    task.cancel()

        if pending.done() and not pending.cancelled():
            return pending.result()
        return _SHUTDOWN

    def __repr__(self) -> str:
        status = "done" if self.done.is_set() else "running" if self._reader_task else "new"
        return f"StreamSession({self.topic}, {self.name}, {status})"


async def open_stream(
    topic: StreamTopic,
    path: str,
    decoder: Decoder,
    shutdown: asyncio.Event,
    config: Optional[StreamConfig] = None,
    dialer: Dialer = dial
) -> StreamSession:
    """
    Dial a stream and start its session.

    Args:
        topic (StreamTopic): Stream topic
        path (str): Stream path appended to the base URL (e.g. 'btcusdt@depth')
        decoder (Decoder): Frame decoder for the topic
        shutdown (asyncio.Event): Shutdown signal shared by all sessions
        config (StreamConfig, optional): Stream settings
        dialer (callable, optional): Coroutine ``dialer(url, open_timeout=...)``
                                     returning a Connection

    Returns:
        StreamSession: The running session

    Raises:
        StreamConnectError: If the connection cannot be established
    """
    config = config or StreamConfig()
    url = f"{config.stream_url}/{path}"

    logger.info(f"Opening {topic} stream {url}")
    connection = await dialer(url, open_timeout=config.open_timeout)

    session = StreamSession(topic, url, connection, decoder, shutdown, config)
    session.start()
    return session
