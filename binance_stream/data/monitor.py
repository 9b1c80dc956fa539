"""
Liveness monitor for stream connections.

Runs next to a session's read loop. Sends a ping control frame every
``ping_interval`` seconds and coordinates shutdown: once the shutdown signal
is set it waits for the read loop to finish, at most ``shutdown_grace``
seconds, then closes the connection.
"""

import asyncio

from loguru import logger

from .transport import Connection, StreamTransportError


class LivenessMonitor:
    """
    Keepalive and shutdown coordinator for one connection.

    The monitor never reads, decodes or publishes. It always closes the
    connection when it exits; the close is a no-op if the read loop already
    closed it.

    Attributes:
        pings_sent (int): Number of pings written so far
    """

    def __init__(
        self,
        connection: Connection,
        done: asyncio.Event,
        shutdown: asyncio.Event,
        ping_interval: float = 1.0,
        shutdown_grace: float = 1.0,
        name: str = "stream"
    ):
        """
        Args:
            connection (Connection): Connection to keep alive
            done (asyncio.Event): Set by the session once its read loop stopped
            shutdown (asyncio.Event): Process-wide shutdown signal
            ping_interval (float): Seconds between pings
            shutdown_grace (float): Longest wait for the read loop after shutdown
            name (str): Stream name used in log messages

        Raises:
            ValueError: If ping_interval or shutdown_grace is not positive
        """
        if ping_interval <= 0:
            raise ValueError(f"ping_interval must be positive, got {ping_interval}")
        if shutdown_grace <= 0:
            raise ValueError(f"shutdown_grace must be positive, got {shutdown_grace}")

        self.connection = connection
        self.done = done
        self.shutdown = shutdown
        self.ping_interval = ping_interval
        self.shutdown_grace = shutdown_grace
        self.name = name
        self.pings_sent = 0

    async def run(self) -> None:
        """Ping until shutdown, a ping failure, or the end of the read loop."""
        try:
            while True:
                try:
                    await asyncio.wait_for(self.shutdown.wait(), timeout=self.ping_interval)
                except asyncio.TimeoutError:
                    if self.done.is_set():
                        logger.debug(f"Read loop for {self.name} finished, monitor exiting")
                        return

                    try:
                        await self.connection.ping()
                    except StreamTransportError as e:
                        logger.error(f"Ping failed for {self.name}: {e}")
                        return

                    self.pings_sent += 1
                    continue

                await self._wait_for_reader()
                return
        finally:
            logger.info(f"Closing connection for {self.name}")
            await self.connection.close()

    async def _wait_for_reader(self) -> None:
        try:
            await asyncio.wait_for(self.done.wait(), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning(
                f"Read loop for {self.name} did not stop within "
                f"{self.shutdown_grace}s grace period, closing anyway"
            )

    def __repr__(self) -> str:
        return (
            f"LivenessMonitor({self.name}, interval={self.ping_interval}s, "
            f"grace={self.shutdown_grace}s, pings={self.pings_sent})"
        )
