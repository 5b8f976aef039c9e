"""
Protocol Module
===============

Binary framing for telemetry exchanges.

    - decode_frame: split a composite frame into its three payloads
    - encode_frame: build a composite frame (robot side, simulators)
"""

from teleop_channel.protocol.frame import (
    FRAME_TAG_IMAGE_DEPTH_STATUS,
    HEADER_SIZE,
    CompositeFrame,
    DecodeResult,
    MalformedFrame,
    UnrecognizedFrame,
    decode_frame,
    encode_frame,
)


__all__ = [
    "FRAME_TAG_IMAGE_DEPTH_STATUS",
    "HEADER_SIZE",
    "CompositeFrame",
    "DecodeResult",
    "MalformedFrame",
    "UnrecognizedFrame",
    "decode_frame",
    "encode_frame",
]
