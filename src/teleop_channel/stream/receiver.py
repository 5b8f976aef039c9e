"""
Telemetry Receivers
===================

Pull-side consumers that turn exchange traffic into broadcast streams.

    - TelemetryReceiver: ``camera0`` composite frames + ``state`` documents
      published on four channels (images, depth, data, state)
    - RgbStreamReceiver: ``rgbjpeg`` plain JPEG stream with an error hook

Design Rules:
    - Payload decodes are scheduled independently; one failing does not
      hold back the other two payloads of the same frame
    - Depth PNG decoding runs in a worker thread; publishing always happens
      on the event loop
    - Publish order per stream is decode-completion order
    - Shutdown stops the transports only; decodes already scheduled finish
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, Optional, Set

import numpy as np
from pydantic import ValidationError

from teleop_channel.models.errors import ErrorKind, PayloadDecodeError
from teleop_channel.models.handshake import Role
from teleop_channel.models.telemetry import RobotData, RobotImageData, RobotState
from teleop_channel.protocol.frame import (
    CompositeFrame,
    MalformedFrame,
    UnrecognizedFrame,
    decode_frame,
)
from teleop_channel.stream.broadcast import BroadcastChannel
from teleop_channel.stream.decoders import decode_depth, decode_image, decode_status
from teleop_channel.transport.connection import (
    Connector,
    ErrorHook,
    ExchangeConnection,
    ExchangeHandler,
)


logger = logging.getLogger(__name__)


class ReceiverMetrics:
    """Metrics for telemetry receiver observability."""

    __slots__ = (
        "frames_decoded",
        "unrecognized_frames",
        "malformed_frames",
        "states_received",
        "decode_failures",
    )

    def __init__(self) -> None:
        self.frames_decoded: int = 0
        self.unrecognized_frames: int = 0
        self.malformed_frames: int = 0
        self.states_received: int = 0
        self.decode_failures: Dict[str, int] = {}

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_decoded": self.frames_decoded,
            "unrecognized_frames": self.unrecognized_frames,
            "malformed_frames": self.malformed_frames,
            "states_received": self.states_received,
            "decode_failures": dict(self.decode_failures),
        }


class _DecodeScheduler:
    """Keeps references to in-flight decode tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every scheduled decode has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))


class TelemetryReceiver(ExchangeHandler):
    """
    Consumer of the composite frame and state exchanges.

    Attributes:
        images: Latest color frame (RobotImageData)
        depth: Latest depth raster (np.ndarray)
        data: Latest status document (RobotData)
        state: Latest robot state (RobotState)
        metrics: Decode metrics

    Example:
        receiver = TelemetryReceiver("ws://relay:8765", "r2d2", "abc")
        receiver.start()

        with receiver.images.subscribe() as images:
            async for image in images:
                show(image.data)
    """

    def __init__(
        self,
        url: str,
        robot_name: str,
        access_token: str,
        frames_exchange: str = "camera0",
        state_exchange: str = "state",
        error_hook: Optional[ErrorHook] = None,
        reconnect_delay: float = 0.0,
        connector: Optional[Connector] = None,
        **connect_options: Any,
    ) -> None:
        self.images: BroadcastChannel[RobotImageData] = BroadcastChannel("images")
        self.depth: BroadcastChannel[np.ndarray] = BroadcastChannel("depth")
        self.data: BroadcastChannel[RobotData] = BroadcastChannel("data")
        self.state: BroadcastChannel[RobotState] = BroadcastChannel("state")

        self.metrics = ReceiverMetrics()
        self._decodes = _DecodeScheduler()

        self.frames_connection = ExchangeConnection(
            url=url,
            exchange=frames_exchange,
            role=Role.PULL,
            robot_name=robot_name,
            access_token=access_token,
            handler=self,
            error_hook=error_hook,
            reconnect_delay=reconnect_delay,
            connector=connector,
            **connect_options,
        )
        self.state_connection = ExchangeConnection(
            url=url,
            exchange=state_exchange,
            role=Role.PULL,
            robot_name=robot_name,
            access_token=access_token,
            handler=self,
            error_hook=error_hook,
            reconnect_delay=reconnect_delay,
            connector=connector,
            **connect_options,
        )

    @property
    def decodes_in_flight(self) -> int:
        return self._decodes.in_flight

    def start(self) -> None:
        self.frames_connection.start()
        self.state_connection.start()

    async def shutdown(self) -> None:
        await asyncio.gather(
            self.frames_connection.shutdown(),
            self.state_connection.shutdown(),
        )

    async def wait_decodes(self) -> None:
        await self._decodes.wait_idle()

    def close_channels(self) -> None:
        for channel in (self.images, self.depth, self.data, self.state):
            channel.close()

    def on_binary(self, connection: ExchangeConnection, data: bytes) -> None:
        if connection is self.state_connection:
            self._unpack_state(data)
        else:
            self._unpack_frame(data)

    def _unpack_frame(self, data: bytes) -> None:
        result = decode_frame(data)

        if isinstance(result, UnrecognizedFrame):
            self.metrics.unrecognized_frames += 1
            return
        if isinstance(result, MalformedFrame):
            self.metrics.malformed_frames += 1
            return

        self.metrics.frames_decoded += 1
        self._schedule_payloads(result)

    def _schedule_payloads(self, frame: CompositeFrame) -> None:
        self._decodes.spawn(self._publish_image(frame.image))
        self._decodes.spawn(self._publish_depth(frame.depth))
        self._decodes.spawn(self._publish_status(frame.status))

    async def _publish_image(self, payload: memoryview) -> None:
        self.images.publish(decode_image(payload))

    async def _publish_depth(self, payload: memoryview) -> None:
        try:
            depth = await asyncio.to_thread(decode_depth, payload)
        except PayloadDecodeError as e:
            self._decode_failed("depth", e)
            return
        self.depth.publish(depth)

    async def _publish_status(self, payload: memoryview) -> None:
        try:
            status = decode_status(payload)
        except PayloadDecodeError as e:
            self._decode_failed("status", e)
            return
        self.data.publish(status)

    def _unpack_state(self, data: bytes) -> None:
        try:
            state = RobotState.model_validate(decode_status(data))
        except (PayloadDecodeError, ValidationError) as e:
            self._decode_failed("state", e)
            return
        self.metrics.states_received += 1
        self.state.publish(state)

    def _decode_failed(self, stream: str, error: Exception) -> None:
        failures = self.metrics.decode_failures
        failures[stream] = failures.get(stream, 0) + 1
        logger.error(
            f"[{ErrorKind.PAYLOAD_DECODE_FAILURE.value}] "
            f"Error while decoding {stream}: {error}"
        )

    def metrics_snapshot(self) -> dict:
        return {
            "frames": self.frames_connection.metrics.to_dict(),
            "state": self.state_connection.metrics.to_dict(),
            "decode": self.metrics.to_dict(),
            "channels": [
                channel.metrics()
                for channel in (self.images, self.depth, self.data, self.state)
            ],
        }


class RgbStreamReceiver(ExchangeHandler):
    """
    Consumer of a plain JPEG exchange (one whole JPEG per message).

    Transport errors go to ``error_hook`` so the caller can notify the
    operator.

    Attributes:
        images: Latest color frame (RobotImageData)
    """

    def __init__(
        self,
        url: str,
        robot_name: str,
        access_token: str,
        exchange: str = "rgbjpeg",
        error_hook: Optional[ErrorHook] = None,
        reconnect_delay: float = 0.0,
        connector: Optional[Connector] = None,
        **connect_options: Any,
    ) -> None:
        self.images: BroadcastChannel[RobotImageData] = BroadcastChannel(exchange)
        self.connection = ExchangeConnection(
            url=url,
            exchange=exchange,
            role=Role.PULL,
            robot_name=robot_name,
            access_token=access_token,
            handler=self,
            error_hook=error_hook,
            reconnect_delay=reconnect_delay,
            connector=connector,
            **connect_options,
        )

    def start(self) -> None:
        self.connection.start()

    async def shutdown(self) -> None:
        await self.connection.shutdown()

    def on_binary(self, connection: ExchangeConnection, data: bytes) -> None:
        self.images.publish(decode_image(data))
