"""
Stream Module
=============

Telemetry fan-out and decoding components.

This module provides the inbound side of the channel layer:
    - BroadcastChannel: replay-latest publish/subscribe primitive
    - Subscription: one subscriber's async view of a channel
    - TelemetryReceiver: composite frames + robot state -> four channels
    - RgbStreamReceiver: plain JPEG stream -> one channel

Example:
    from teleop_channel.stream import TelemetryReceiver

    receiver = TelemetryReceiver(url, robot_name="r2d2", access_token="abc")
    receiver.start()

    with receiver.state.subscribe() as states:
        async for state in states:
            print(state.joints)
"""

from teleop_channel.stream.broadcast import BroadcastChannel, Subscription
from teleop_channel.stream.receiver import (
    ReceiverMetrics,
    RgbStreamReceiver,
    TelemetryReceiver,
)


__all__ = [
    "BroadcastChannel",
    "Subscription",
    "ReceiverMetrics",
    "RgbStreamReceiver",
    "TelemetryReceiver",
]
