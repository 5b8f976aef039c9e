"""
Handshake and Envelope Schema
=============================

Control messages written to the relay over every exchange connection.

Wire Contract:
    Handshake (once per connection open, before any other traffic):
        {"command": "pull", "exchange": "camera0",
         "robot_name": "r2d2", "accessToken": "abc"}

    Outbound command envelope (one per queued command):
        {"command": "push", "exchange": "commands",
         "robot_name": "r2d2", "accessToken": "abc",
         "message": {"op": "...", "data": {...}, ...}}

Both serialize compactly (no whitespace) with fields in the order above.
"""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Role declared in the handshake."""

    PULL = "pull"
    PUSH = "push"


class HandshakePacket(BaseModel):
    """
    First message sent on a freshly opened connection.

    Attributes:
        command: Role of the connection (pull = consumer, push = producer)
        exchange: Logical stream the relay should bind this connection to
        robot_name: Robot identifier
        access_token: Static token, serialized as ``accessToken``
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    command: Role
    exchange: str = Field(..., min_length=1)
    robot_name: str
    access_token: str = Field(..., alias="accessToken")

    def to_json(self) -> str:
        """Compact JSON as written to the wire."""
        return self.model_dump_json(by_alias=True)


class OutboundEnvelope(BaseModel):
    """
    Wrapper for one operator command on the push exchange.

    Envelopes are immutable once built; the queue never merges or
    deduplicates them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    command: Role = Role.PUSH
    exchange: str = "commands"
    robot_name: str
    access_token: str = Field(..., alias="accessToken")
    message: Dict[str, Any]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
