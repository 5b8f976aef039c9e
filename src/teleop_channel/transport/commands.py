"""
Command Channel
===============

Ordered delivery of operator commands over the push exchange.

    - CommandQueue: unbounded FIFO drained only while the connection is open
    - CommandChannel: push ExchangeConnection + CommandQueue, logs acks

Delivery Rules:
    - Commands go on the wire in exactly the order they were enqueued
    - While the connection is not open, entries stay queued, untouched
    - An entry is removed right before it is handed to the transport; if
      that send fails the entry is lost, not retried (at most once per
      attempt)
    - Only one drain runs at a time
"""

import asyncio
import json
import logging
from collections import deque
from typing import Any, Deque, Optional

from websockets.exceptions import ConnectionClosed

from teleop_channel.models.commands import OperatorCommand
from teleop_channel.models.handshake import OutboundEnvelope, Role
from teleop_channel.transport.connection import (
    Connector,
    ErrorHook,
    ExchangeConnection,
    ExchangeHandler,
)


logger = logging.getLogger(__name__)


class CommandQueue:
    """
    FIFO buffer of outbound envelopes bound to one connection.

    ``enqueue()`` never blocks and never refuses an entry. Draining
    happens in a single background task, started after every enqueue and
    after every successful open.

    Attributes:
        size: Number of envelopes still waiting
        sent_count: Envelopes handed to the transport
        lost_count: Envelopes removed but not delivered (send failed)
    """

    def __init__(self, connection: ExchangeConnection) -> None:
        self._connection = connection
        self._pending: Deque[OutboundEnvelope] = deque()
        self._drain_task: Optional[asyncio.Task] = None
        self._enqueued_count = 0
        self._sent_count = 0
        self._lost_count = 0

    @property
    def size(self) -> int:
        return len(self._pending)

    @property
    def sent_count(self) -> int:
        return self._sent_count

    @property
    def lost_count(self) -> int:
        return self._lost_count

    def pending(self) -> list:
        """Snapshot of waiting envelopes, head first."""
        return list(self._pending)

    def enqueue(self, envelope: OutboundEnvelope) -> None:
        """Append ``envelope`` and try to drain."""
        self._pending.append(envelope)
        self._enqueued_count += 1
        logger.debug(f"Enqueued command (queue size {len(self._pending)})")
        self.schedule_drain()

    def schedule_drain(self) -> None:
        """
        Start a drain task unless one is already running.

        Without a running event loop nothing is scheduled; the queue is
        drained on the next open.
        """
        if not self._pending:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self.drain(), name="command-drain")

    async def drain(self) -> int:
        """
        Send queued envelopes in order while the connection is open.

        Returns:
            Number of envelopes handed to the transport.
        """
        sent = 0
        while self._pending and self._connection.is_open:
            envelope = self._pending.popleft()
            logger.debug(f"Sending: {envelope.message}")
            try:
                await self._connection.send(envelope.to_json())
            except (ConnectionClosed, ConnectionError) as e:
                self._lost_count += 1
                logger.warning(
                    f"Command {envelope.message.get('op')!r} lost, "
                    f"connection dropped during send: {e}"
                )
                break
            self._sent_count += 1
            sent += 1
        return sent

    def metrics(self) -> dict:
        return {
            "size": len(self._pending),
            "enqueued": self._enqueued_count,
            "sent": self._sent_count,
            "lost": self._lost_count,
        }


class CommandChannel(ExchangeHandler):
    """
    Producer side of the ``commands`` exchange.

    Example:
        channel = CommandChannel("ws://relay:8765", "r2d2", "abc")
        channel.start()
        channel.enqueue(OperationCommand(op="go_home_safely"))
    """

    def __init__(
        self,
        url: str,
        robot_name: str,
        access_token: str,
        exchange: str = "commands",
        error_hook: Optional[ErrorHook] = None,
        reconnect_delay: float = 0.0,
        connector: Optional[Connector] = None,
        **connect_options: Any,
    ) -> None:
        self.robot_name = robot_name
        self.exchange = exchange
        self._access_token = access_token

        self.connection = ExchangeConnection(
            url=url,
            exchange=exchange,
            role=Role.PUSH,
            robot_name=robot_name,
            access_token=access_token,
            handler=self,
            error_hook=error_hook,
            reconnect_delay=reconnect_delay,
            connector=connector,
            **connect_options,
        )
        self.queue = CommandQueue(self.connection)
        self.acks_received = 0

    def start(self) -> None:
        self.connection.start()

    async def shutdown(self) -> None:
        await self.connection.shutdown()
        if self.queue.size:
            logger.info(f"{self.queue.size} unsent command(s) left in the queue at shutdown")

    def enqueue(self, command: OperatorCommand) -> OutboundEnvelope:
        """
        Wrap ``command`` in an envelope and queue it for sending.

        Returns:
            The immutable envelope that will go on the wire.
        """
        envelope = OutboundEnvelope(
            exchange=self.exchange,
            robot_name=self.robot_name,
            access_token=self._access_token,
            message=command.to_message(),
        )
        logger.info(f"Enqueuing command: {command.op}")
        self.queue.enqueue(envelope)
        return envelope

    def on_open(self, connection: ExchangeConnection) -> None:
        if self.queue.size:
            logger.info(f"{self.queue.size} unsent command(s) in the queue, sending them")
        self.queue.schedule_drain()

    def on_binary(self, connection: ExchangeConnection, data: bytes) -> None:
        try:
            ack = json.loads(str(data, "utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable acknowledgement on '{self.exchange}': {e}")
            return
        self.acks_received += 1
        logger.info(f"Command acknowledgement: {ack}")

    def metrics(self) -> dict:
        return {
            "connection": self.connection.metrics.to_dict(),
            "queue": self.queue.metrics(),
            "acks_received": self.acks_received,
        }
