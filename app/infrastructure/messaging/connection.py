"""Broker connection manager: owns the single AMQP connection/channel and the reconnection policy."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError

from app.infrastructure.messaging.exceptions import BrokerConnectionError, ChannelUnavailable
from app.observability.metrics import MetricsCollector

DEFAULT_RECONNECT_BASE_DELAY = 5.0
DEFAULT_RECONNECT_MAX_ATTEMPTS = 5

# ChannelInvalidStateError (a RuntimeError) is raised when a channel closes under an operation
BROKER_ERRORS = (AMQPError, ChannelInvalidStateError, OSError, asyncio.TimeoutError)

ConnectHook = Callable[[AbstractChannel], Awaitable[Any]]
ConnectFactory = Callable[..., Awaitable[AbstractConnection]]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"


class BrokerConnectionManager:
    """
    Single connection, single channel. Publisher and consumer get the channel through
    get_channel() and never open connections of their own.

    A close or error on the connection or channel moves CONNECTED -> DEGRADED and starts
    one reconnect loop: attempt n waits base_delay * n seconds, up to max_attempts. When
    the attempts run out the manager stays DEGRADED until connect() is called again.
    connect() and reconnect attempts are serialized by one lock.
    """

    def __init__(
        self,
        url: str,
        *,
        base_delay: float = DEFAULT_RECONNECT_BASE_DELAY,
        max_attempts: int = DEFAULT_RECONNECT_MAX_ATTEMPTS,
        connect_timeout: float = 5.0,
        heartbeat: int = 60,
        connect_factory: ConnectFactory = aio_pika.connect,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._url = url
        self._base_delay = base_delay
        self._max_attempts = max_attempts
        self._connect_timeout = connect_timeout
        self._heartbeat = heartbeat
        self._connect_factory = connect_factory
        self._metrics = metrics
        self._logger = logger or logging.getLogger(__name__)

        self._state = ConnectionState.DISCONNECTED
        self._connection: Optional[AbstractConnection] = None
        self._channel: Optional[AbstractChannel] = None
        self._connect_hooks: list[ConnectHook] = []
        self._lock = asyncio.Lock()
        self._connected_event = asyncio.Event()
        self._reconnect_task: Optional[asyncio.Task[None]] = None
        self._attempts = 0
        self._exhausted = False
        self._closing = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_attempts(self) -> int:
        return self._attempts

    @property
    def reconnect_exhausted(self) -> bool:
        return self._exhausted

    def add_connect_hook(self, hook: ConnectHook) -> None:
        """Run hook(channel) after every successful connect, before the manager reports CONNECTED."""
        self._connect_hooks.append(hook)

    def is_healthy(self) -> bool:
        return (
            self._state is ConnectionState.CONNECTED
            and self._channel is not None
            and not self._channel.is_closed
        )

    def get_channel(self) -> AbstractChannel:
        if not self.is_healthy():
            raise ChannelUnavailable(
                f"Broker channel not available (state={self._state.value})"
            )
        return self._channel

    async def wait_until_connected(self) -> None:
        await self._connected_event.wait()

    def status(self) -> dict[str, Any]:
        return {
            "state": self._state.value,
            "healthy": self.is_healthy(),
            "reconnect_attempts": self._attempts,
            "max_attempts": self._max_attempts,
            "reconnect_exhausted": self._exhausted,
        }

    async def connect(self) -> AbstractChannel:
        """Open connection and channel. No-op while already connected. Raises BrokerConnectionError on failure."""
        async with self._lock:
            if self.is_healthy():
                return self._channel
            self._closing = False
            if self._exhausted:
                # An explicit connect after exhaustion starts a fresh backoff sequence.
                self._attempts = 0
                self._exhausted = False
            try:
                return await self._open()
            except BrokerConnectionError:
                self._schedule_reconnect()
                raise

    async def _open(self) -> AbstractChannel:
        self._state = ConnectionState.CONNECTING
        self._connected_event.clear()
        await self._discard_current()
        self._logger.info("broker_connecting")
        try:
            connection = await self._connect_factory(
                self._url,
                timeout=self._connect_timeout,
                heartbeat=self._heartbeat,
            )
        except Exception as e:
            self._state = ConnectionState.DEGRADED
            raise BrokerConnectionError(f"Failed to connect to broker: {e}") from e

        # Any failure past this point leaves a half-open connection to close.
        try:
            channel = await connection.channel()
            for hook in self._connect_hooks:
                await hook(channel)
        except Exception as e:
            self._state = ConnectionState.DEGRADED
            await self._close_quietly(connection)
            raise BrokerConnectionError(f"Failed to open broker channel: {e}") from e

        connection.close_callbacks.add(self._on_closed)
        channel.close_callbacks.add(self._on_closed)
        self._connection = connection
        self._channel = channel
        self._state = ConnectionState.CONNECTED
        self._attempts = 0
        self._exhausted = False
        self._connected_event.set()
        self._logger.info("broker_connected")
        return channel

    def _on_closed(self, sender: Any, exc: Optional[BaseException] = None, *args: Any) -> None:
        # Callbacks from connections/channels we already replaced or closed ourselves are ignored.
        if self._closing or sender is None or sender not in (self._connection, self._channel):
            return
        if self._state is not ConnectionState.CONNECTED:
            return
        self._state = ConnectionState.DEGRADED
        self._connected_event.clear()
        self._logger.warning(
            "broker_connection_lost",
            extra={
                "source": type(sender).__name__,
                "error": str(exc) if exc else None,
            },
        )
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closing:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        if self._attempts >= self._max_attempts:
            self._mark_exhausted()
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_loop())

    async def _reconnect_loop(self) -> None:
        while self._attempts < self._max_attempts:
            self._attempts += 1
            attempt = self._attempts
            delay = self._base_delay * attempt
            self._logger.info(
                "broker_reconnect_scheduled",
                extra={"attempt": attempt, "max_attempts": self._max_attempts, "delay_seconds": delay},
            )
            if self._metrics is not None:
                self._metrics.increment("broker_reconnect_attempts")
            await asyncio.sleep(delay)
            async with self._lock:
                if self._closing or self.is_healthy():
                    return
                try:
                    await self._open()
                    return
                except BrokerConnectionError as e:
                    self._logger.warning(
                        "broker_reconnect_failed",
                        extra={"attempt": attempt, "error": e.message},
                    )
        self._mark_exhausted()

    def _mark_exhausted(self) -> None:
        self._state = ConnectionState.DEGRADED
        self._exhausted = True
        self._logger.error(
            "broker_reconnect_exhausted",
            extra={"max_attempts": self._max_attempts},
        )

    async def _discard_current(self) -> None:
        channel, connection = self._channel, self._connection
        self._channel = None
        self._connection = None
        if channel is not None:
            await self._close_quietly(channel)
        if connection is not None:
            await self._close_quietly(connection)

    async def _close_quietly(self, closable: Any) -> None:
        if closable.is_closed:
            return
        try:
            await closable.close()
        except BROKER_ERRORS as e:
            self._logger.debug("broker_close_error", extra={"error": str(e)})

    async def close(self) -> None:
        """Explicit teardown. Cancels any pending reconnect; the manager ends DISCONNECTED."""
        self._closing = True
        task = self._reconnect_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        async with self._lock:
            await self._discard_current()
            self._state = ConnectionState.DISCONNECTED
            self._connected_event.clear()
        self._logger.info("broker_disconnected")
