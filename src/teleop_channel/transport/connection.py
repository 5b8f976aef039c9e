"""
Exchange Connection
===================

One resilient WebSocket connection bound to a single logical exchange.

This module provides the ExchangeConnection class which:
    - Opens a connection to the relay as soon as it is started
    - Sends exactly one handshake per successful open, before any traffic
    - Routes inbound binary messages to its ExchangeHandler
    - Logs and drops inbound text messages
    - Reconnects after every close or error, indefinitely, until shutdown

State Machine:
    CONNECTING -> OPEN -> CLOSED -> CONNECTING -> ...
    SHUTDOWN is terminal and reachable from any state via shutdown().

Design Rules:
    - At most one live transport per ExchangeConnection at any instant
    - Each reconnect replaces the previous transport, never adds to it
    - Handlers are fixed at construction; external code never swaps them
    - No retry limit; the delay between attempts defaults to zero
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed

from teleop_channel.models.errors import ErrorKind
from teleop_channel.models.handshake import HandshakePacket, Role


logger = logging.getLogger(__name__)


Connector = Callable[..., Any]
ErrorHook = Callable[[BaseException], None]


class ConnectionState(str, Enum):
    """Lifecycle states of an ExchangeConnection."""

    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    SHUTDOWN = "SHUTDOWN"


class ExchangeHandler:
    """
    Base receiver of connection events.

    Subclass and override what you need; the defaults do nothing.
    All methods run on the event loop and must not block.
    """

    def on_open(self, connection: "ExchangeConnection") -> None:
        """Called after the handshake has been written."""

    def on_binary(self, connection: "ExchangeConnection", data: bytes) -> None:
        """Called for every inbound binary message, in arrival order."""

    def on_close(
        self,
        connection: "ExchangeConnection",
        code: Optional[int],
        reason: str,
    ) -> None:
        """Called when a transport closes and a reconnect is about to start."""

    def on_error(self, connection: "ExchangeConnection", error: BaseException) -> None:
        """Called for transport errors (failed connect, abnormal close)."""


class ConnectionMetrics:
    """Metrics for ExchangeConnection observability."""

    __slots__ = (
        "connect_attempts",
        "opened_count",
        "reconnect_count",
        "messages_received",
        "messages_sent",
        "text_dropped",
        "transport_errors",
    )

    def __init__(self) -> None:
        self.connect_attempts: int = 0
        self.opened_count: int = 0
        self.reconnect_count: int = 0
        self.messages_received: int = 0
        self.messages_sent: int = 0
        self.text_dropped: int = 0
        self.transport_errors: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "connect_attempts": self.connect_attempts,
            "opened_count": self.opened_count,
            "reconnect_count": self.reconnect_count,
            "messages_received": self.messages_received,
            "messages_sent": self.messages_sent,
            "text_dropped": self.text_dropped,
            "transport_errors": self.transport_errors,
        }


class ExchangeConnection:
    """
    Resilient connection for one exchange.

    Attributes:
        url: Relay endpoint, shared by all exchanges
        exchange: Exchange name declared in the handshake
        role: pull (consumer) or push (producer)
        robot_name: Robot identifier
        state: Current ConnectionState
        metrics: Operational metrics

    Example:
        connection = ExchangeConnection(
            url="ws://relay:8765",
            exchange="camera0",
            role=Role.PULL,
            robot_name="r2d2",
            access_token="abc",
            handler=receiver,
        )
        connection.start()
        ...
        await connection.shutdown()
    """

    def __init__(
        self,
        url: str,
        exchange: str,
        role: Role,
        robot_name: str,
        access_token: str,
        handler: ExchangeHandler,
        error_hook: Optional[ErrorHook] = None,
        reconnect_delay: float = 0.0,
        connector: Optional[Connector] = None,
        **connect_options: Any,
    ) -> None:
        """
        Initialize exchange connection.

        Args:
            url: WebSocket URL of the relay
            exchange: Exchange name (e.g. "camera0", "state", "commands")
            role: Handshake role
            robot_name: Robot identifier attached to every handshake
            access_token: Static token attached to every handshake
            handler: Receiver of open/message/close/error events
            error_hook: Optional caller hook for transport errors
            reconnect_delay: Seconds between a close and the next attempt
            connector: Replacement for websockets.connect (tests)
            connect_options: Extra keyword arguments for the connector
        """
        self.url = url
        self.exchange = exchange
        self.role = role
        self.robot_name = robot_name
        self.reconnect_delay = reconnect_delay

        self._handshake = HandshakePacket(
            command=role,
            exchange=exchange,
            robot_name=robot_name,
            access_token=access_token,
        )
        self._handler = handler
        self._error_hook = error_hook
        self._connector: Connector = connector or websockets.connect
        self._connect_options = connect_options

        self._state = ConnectionState.CLOSED
        self._websocket: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None

        self.metrics = ConnectionMetrics()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        """Whether a handshaken transport is currently live."""
        return self._state is ConnectionState.OPEN and self._websocket is not None

    @property
    def handshake(self) -> HandshakePacket:
        return self._handshake

    def start(self) -> asyncio.Task:
        """
        Start the connect/reconnect loop as a background task.

        Must be called from a running event loop. Calling it again while
        the loop runs returns the existing task.
        """
        if self._state is ConnectionState.SHUTDOWN:
            raise RuntimeError(f"Connection '{self.exchange}' has been shut down")
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"exchange-{self.exchange}"
            )
        return self._task

    async def send(self, message: Union[str, bytes]) -> None:
        """
        Write one message on the live transport.

        Raises:
            ConnectionError: If no transport is open
            websockets.exceptions.ConnectionClosed: If it closes mid-send
        """
        websocket = self._websocket
        if not self.is_open or websocket is None:
            raise ConnectionError(f"Exchange '{self.exchange}' is not open")
        await websocket.send(message)
        self.metrics.messages_sent += 1

    async def shutdown(self) -> None:
        """
        Stop reconnecting, then close the live transport.

        Pending work already scheduled by handlers is not cancelled.
        """
        if self._state is ConnectionState.SHUTDOWN:
            return
        logger.info(f"Exchange '{self.exchange}' shutting down")
        self._state = ConnectionState.SHUTDOWN

        websocket = self._websocket
        if websocket is not None:
            await websocket.close()

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._websocket = None
        self._state = ConnectionState.SHUTDOWN

    async def _run(self) -> None:
        """Connect, receive until closed, reconnect; until shutdown."""
        logger.info(f"Exchange '{self.exchange}' starting, connecting to {self.url}")

        while self._state is not ConnectionState.SHUTDOWN:
            self._state = ConnectionState.CONNECTING
            self.metrics.connect_attempts += 1
            code: Optional[int] = None
            reason = ""

            try:
                code, reason = await self._connect_and_receive()
            except ConnectionClosed as e:
                code, reason = _close_info(e)
                self._report_error(e)
            except Exception as e:
                self._report_error(e)
            finally:
                self._websocket = None

            if self._state is ConnectionState.SHUTDOWN:
                break

            self._state = ConnectionState.CLOSED
            logger.info(
                f"Exchange '{self.exchange}' closed "
                f"(code={code}, reason={reason!r}), reconnecting"
            )
            self._notify(self._handler.on_close, self, code, reason)

            self.metrics.reconnect_count += 1
            # always yields, even with a zero delay
            await asyncio.sleep(self.reconnect_delay)

        logger.info(f"Exchange '{self.exchange}' stopped")

    async def _connect_and_receive(self) -> tuple:
        """Open one transport and consume it until it closes normally."""
        async with self._connector(self.url, **self._connect_options) as websocket:
            if self._state is ConnectionState.SHUTDOWN:
                return None, "shutdown"

            self._websocket = websocket
            await websocket.send(self._handshake.to_json())
            if self._state is ConnectionState.SHUTDOWN:
                return None, "shutdown"
            self._state = ConnectionState.OPEN
            self.metrics.opened_count += 1
            logger.info(
                f"Exchange '{self.exchange}' opened as {self._handshake.command.value}"
            )
            self._handler.on_open(self)

            async for message in websocket:
                self.metrics.messages_received += 1
                if isinstance(message, str):
                    self.metrics.text_dropped += 1
                    logger.error(
                        f"[{ErrorKind.UNEXPECTED_TEXT_PAYLOAD.value}] "
                        f"Exchange '{self.exchange}' got text: {message[:200]!r}"
                    )
                    continue
                self._handler.on_binary(self, message)

            return (
                getattr(websocket, "close_code", None),
                getattr(websocket, "close_reason", None) or "",
            )

    def _report_error(self, error: BaseException) -> None:
        if self._state is ConnectionState.SHUTDOWN:
            return
        self.metrics.transport_errors += 1
        logger.warning(
            f"[{ErrorKind.TRANSPORT_ERROR.value}] "
            f"Exchange '{self.exchange}': {type(error).__name__}: {error}"
        )
        self._notify(self._handler.on_error, self, error)
        if self._error_hook is not None:
            self._notify(self._error_hook, error)

    def _notify(self, callback: Callable[..., None], *args: Any) -> None:
        """Run an event callback; a failing callback never stops the loop."""
        try:
            callback(*args)
        except Exception:
            logger.exception(
                f"Exchange '{self.exchange}': event callback {callback!r} failed"
            )


def _close_info(error: ConnectionClosed) -> tuple:
    frame = error.rcvd or error.sent
    if frame is None:
        return None, ""
    return frame.code, frame.reason
