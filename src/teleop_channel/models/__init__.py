"""
Data Models
===========

Pydantic models and plain data types for the channel layer.

Models:
    Wire:
        - Role, HandshakePacket, OutboundEnvelope
    Commands:
        - Operation, OperationCommand, SetJointsCommand, SetTagCommand
    Telemetry:
        - RobotImageData, RobotState, RobotData
    Errors:
        - ErrorKind, PayloadDecodeError
"""

from teleop_channel.models.handshake import HandshakePacket, OutboundEnvelope, Role
from teleop_channel.models.commands import (
    Operation,
    OperationCommand,
    OperatorCommand,
    SetJointsCommand,
    SetTagCommand,
)
from teleop_channel.models.telemetry import RobotData, RobotImageData, RobotState
from teleop_channel.models.errors import ErrorKind, PayloadDecodeError

__all__ = [
    # Wire
    "Role",
    "HandshakePacket",
    "OutboundEnvelope",
    # Commands
    "Operation",
    "OperationCommand",
    "OperatorCommand",
    "SetJointsCommand",
    "SetTagCommand",
    # Telemetry
    "RobotData",
    "RobotImageData",
    "RobotState",
    # Errors
    "ErrorKind",
    "PayloadDecodeError",
]
