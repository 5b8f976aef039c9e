"""
Transport Module
================

Resilient exchange connections and the outbound command path.

    - ExchangeConnection: one WebSocket per exchange, handshake + reconnect
    - ExchangeHandler: base class for connection event receivers
    - CommandQueue / CommandChannel: ordered command delivery
"""

from teleop_channel.transport.connection import (
    ConnectionMetrics,
    ConnectionState,
    ExchangeConnection,
    ExchangeHandler,
)
from teleop_channel.transport.commands import CommandChannel, CommandQueue


__all__ = [
    "ConnectionMetrics",
    "ConnectionState",
    "ExchangeConnection",
    "ExchangeHandler",
    "CommandChannel",
    "CommandQueue",
]
