"""
Composite Telemetry Frame
=========================

Demultiplexer for the binary frame carried on telemetry exchanges.

Byte Layout (little-endian):
    [0]        frame type tag (only 1 = image+depth+status is defined)
    [1:13]     three uint32 lengths L0, L1, L2
    [13:...]   L0 bytes JPEG image, L1 bytes PNG depth, L2 bytes UTF-8 JSON

Bytes beyond 13 + L0 + L1 + L2 are ignored.

Design Rules:
    - decode_frame() never raises; bad frames come back as result objects
    - Payloads are memoryview slices of the input (no copying)
    - Does NOT decode payload contents (see stream.decoders)
"""

import logging
import struct
from dataclasses import dataclass
from typing import Union


logger = logging.getLogger(__name__)


FRAME_TAG_IMAGE_DEPTH_STATUS = 1
HEADER_SIZE = 13

_LENGTHS = struct.Struct("<III")


@dataclass(frozen=True)
class CompositeFrame:
    """
    One sampling instant split into its three payloads.

    Attributes:
        image: JPEG color frame bytes
        depth: PNG depth raster bytes
        status: UTF-8 JSON status document bytes
    """

    image: memoryview
    depth: memoryview
    status: memoryview

    def __repr__(self) -> str:
        return (
            f"CompositeFrame(image={len(self.image)}B, "
            f"depth={len(self.depth)}B, status={len(self.status)}B)"
        )


@dataclass(frozen=True)
class UnrecognizedFrame:
    """Frame whose type tag is not one this layer understands."""

    tag: int


@dataclass(frozen=True)
class MalformedFrame:
    """Frame whose header does not fit in the received bytes."""

    reason: str
    declared_size: int
    actual_size: int


DecodeResult = Union[CompositeFrame, UnrecognizedFrame, MalformedFrame]


def decode_frame(raw: Union[bytes, bytearray, memoryview]) -> DecodeResult:
    """
    Split one binary message into image, depth and status payloads.

    Args:
        raw: Complete binary WebSocket message

    Returns:
        CompositeFrame on success, UnrecognizedFrame for an unknown tag,
        MalformedFrame when the declared lengths exceed the message.
    """
    view = memoryview(raw)
    actual = len(view)

    if actual == 0:
        logger.warning("Dropping empty frame")
        return MalformedFrame("empty message", HEADER_SIZE, 0)

    tag = view[0]
    if tag != FRAME_TAG_IMAGE_DEPTH_STATUS:
        logger.warning(
            f"Dropping frame: type {tag} isn't JPG+PNG+JSON "
            f"({FRAME_TAG_IMAGE_DEPTH_STATUS})"
        )
        return UnrecognizedFrame(tag)

    if actual < HEADER_SIZE:
        logger.warning(f"Dropping frame: header truncated ({actual} < {HEADER_SIZE} bytes)")
        return MalformedFrame("truncated header", HEADER_SIZE, actual)

    image_len, depth_len, status_len = _LENGTHS.unpack_from(view, 1)
    declared = HEADER_SIZE + image_len + depth_len + status_len
    if declared > actual:
        logger.warning(
            f"Dropping frame: lengths ({image_len}, {depth_len}, {status_len}) "
            f"need {declared} bytes, got {actual}"
        )
        return MalformedFrame("payload lengths exceed message", declared, actual)

    image_end = HEADER_SIZE + image_len
    depth_end = image_end + depth_len
    return CompositeFrame(
        image=view[HEADER_SIZE:image_end],
        depth=view[image_end:depth_end],
        status=view[depth_end:declared],
    )


def encode_frame(
    image: bytes,
    depth: bytes,
    status: bytes,
    tag: int = FRAME_TAG_IMAGE_DEPTH_STATUS,
) -> bytes:
    """
    Build a composite frame the way the robot side does.

    Used by simulators and tests that need to feed a receiver.
    """
    header = bytes([tag]) + _LENGTHS.pack(len(image), len(depth), len(status))
    return header + bytes(image) + bytes(depth) + bytes(status)
