"""
teleop_channel
==============

Channel protocol layer for a remote robot operator console.

This package keeps resilient WebSocket connections to a robot relay,
demultiplexes composite telemetry frames (image + depth + status) into
replay-latest broadcast channels, and delivers operator commands in order
across reconnect cycles.

Components:
    - protocol: Composite telemetry frame demultiplexer
    - stream: Broadcast channels, payload decoders and telemetry receivers
    - transport: Exchange connections and the outbound command channel
    - session: Operator session wiring receivers and commands together

Example:
    from teleop_channel.config import settings
    from teleop_channel.models import Operation
    from teleop_channel.session import OperatorSession

    session = OperatorSession.from_settings(settings)
    session.start()
    session.send_op(Operation.GO_HOME_SAFELY)
"""

__version__ = "0.1.0"
__author__ = "Teleop Channel Project"

__all__ = [
    "__version__",
]
