"""
Operator Session
================

Wires one TelemetryReceiver and one CommandChannel for a single robot.

The session tracks the latest status document (RobotData) from the
``data`` stream and attaches a deep copy of it to every command built, so
each command carries the snapshot current at the time it was issued.
"""

import asyncio
import copy
import logging
from typing import Any, List, Optional, Sequence, Union

from teleop_channel.config import ExchangesConfig, Settings
from teleop_channel.models.commands import (
    Operation,
    OperationCommand,
    SetJointsCommand,
    SetTagCommand,
)
from teleop_channel.models.handshake import OutboundEnvelope
from teleop_channel.models.telemetry import RobotData, RobotState
from teleop_channel.stream.receiver import TelemetryReceiver
from teleop_channel.transport.commands import CommandChannel
from teleop_channel.transport.connection import Connector, ErrorHook


logger = logging.getLogger(__name__)


class OperatorSession:
    """
    Telemetry in, commands out, for one robot.

    Attributes:
        receiver: Telemetry streams (images, depth, data, state)
        commands: Ordered command channel

    Example:
        session = OperatorSession.from_settings(settings)
        session.start()
        session.send_op(Operation.ASK_FOR_MANUAL)
        ...
        await session.shutdown()
    """

    def __init__(
        self,
        url: str,
        robot_name: str,
        access_token: str,
        exchanges: Optional[ExchangesConfig] = None,
        error_hook: Optional[ErrorHook] = None,
        reconnect_delay: float = 0.0,
        connector: Optional[Connector] = None,
        **connect_options: Any,
    ) -> None:
        exchanges = exchanges or ExchangesConfig()
        self.robot_name = robot_name

        self.receiver = TelemetryReceiver(
            url,
            robot_name,
            access_token,
            frames_exchange=exchanges.frames,
            state_exchange=exchanges.state,
            error_hook=error_hook,
            reconnect_delay=reconnect_delay,
            connector=connector,
            **connect_options,
        )
        self.commands = CommandChannel(
            url,
            robot_name,
            access_token,
            exchange=exchanges.commands,
            error_hook=error_hook,
            reconnect_delay=reconnect_delay,
            connector=connector,
            **connect_options,
        )
        self._running = False

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "OperatorSession":
        """Build a session from loaded settings; kwargs override."""
        options = dict(settings.connection.connect_options())
        options.update(kwargs)
        options.setdefault("reconnect_delay", settings.connection.reconnect_delay_seconds)
        return cls(
            settings.connection.url,
            settings.robot.name,
            settings.robot.access_token,
            exchanges=settings.exchanges,
            **options,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def robot_data(self) -> Optional[RobotData]:
        return self.receiver.data.latest

    @property
    def robot_state(self) -> Optional[RobotState]:
        return self.receiver.state.latest

    @property
    def joints(self) -> List[float]:
        """Latest joint angles in radians, empty until a state arrives."""
        state = self.robot_state
        if state is None or state.joints is None:
            return []
        return list(state.joints)

    def start(self) -> None:
        logger.info(f"Operator session for '{self.robot_name}' starting")
        self.commands.start()
        self.receiver.start()
        self._running = True

    async def shutdown(self) -> None:
        """Stop both components and end every subscription."""
        if not self._running:
            return
        self._running = False
        await asyncio.gather(self.commands.shutdown(), self.receiver.shutdown())
        self.receiver.close_channels()
        logger.info(f"Operator session for '{self.robot_name}' stopped")

    def send_op(self, op: Union[Operation, str]) -> OutboundEnvelope:
        """Queue a bare named action."""
        name = op.value if isinstance(op, Operation) else op
        return self.commands.enqueue(OperationCommand(op=name, data=self._snapshot()))

    def set_joints(self, joints: Sequence[float]) -> OutboundEnvelope:
        """Queue a joint target, in degrees."""
        return self.commands.enqueue(
            SetJointsCommand(joints=list(joints), data=self._snapshot())
        )

    def set_tag(self, tag: int) -> OutboundEnvelope:
        """Queue a calibration tag selection."""
        return self.commands.enqueue(SetTagCommand(tag=tag, data=self._snapshot()))

    def _snapshot(self) -> Optional[RobotData]:
        return copy.deepcopy(self.receiver.data.latest)

    def metrics(self) -> dict:
        return {
            "telemetry": self.receiver.metrics_snapshot(),
            "commands": self.commands.metrics(),
        }
