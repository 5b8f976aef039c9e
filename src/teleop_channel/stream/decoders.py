"""
Payload Decoders
================

Decoding of the three payloads carried by a composite telemetry frame.

Design Rules:
    - This is the ONLY place in the codebase that decodes payload contents
    - Depth and status decoders raise PayloadDecodeError and nothing else
    - Image bytes are never inspected, so decode_image cannot fail
    - Depth rasters keep their native bit depth (16-bit PNG stays uint16)
"""

import json
import logging
from typing import Union

import cv2
import numpy as np

from teleop_channel.models.errors import PayloadDecodeError
from teleop_channel.models.telemetry import JPEG_MIME_TYPE, RobotData, RobotImageData


logger = logging.getLogger(__name__)


Buffer = Union[bytes, bytearray, memoryview]

# Shifts 16-bit depth samples into the visible 8-bit range
DEPTH_DISPLAY_SCALE = 64


def decode_image(payload: Buffer) -> RobotImageData:
    """
    Wrap JPEG bytes for publication.

    The image is not decoded to pixels; subscribers receive the encoded
    bytes with their MIME type. An empty payload is published as-is.
    """
    return RobotImageData(data=bytes(payload), mime_type=JPEG_MIME_TYPE)


def decode_depth(payload: Buffer) -> np.ndarray:
    """
    Decode a PNG depth payload into a numpy raster.

    Args:
        payload: PNG-encoded depth image

    Returns:
        Depth raster as np.ndarray (H, W), usually dtype=uint16

    Raises:
        PayloadDecodeError: If the PNG cannot be decoded
    """
    try:
        nparr = np.frombuffer(payload, np.uint8)
        depth = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise PayloadDecodeError(f"Depth decode failed: {e}")

    if depth is None:
        raise PayloadDecodeError("Depth decode failed: cv2.imdecode returned None")

    if depth.ndim == 3:
        depth = depth[:, :, 0]

    return depth


def depth_to_display(depth: np.ndarray) -> np.ndarray:
    """
    Scale a 16-bit depth raster into an 8-bit image for display.

    Samples are multiplied by DEPTH_DISPLAY_SCALE and clipped to 255.
    """
    scaled = depth.astype(np.uint32) * DEPTH_DISPLAY_SCALE
    return np.clip(scaled, 0, 255).astype(np.uint8)


def decode_status(payload: Buffer) -> RobotData:
    """
    Parse a UTF-8 JSON status document.

    Raises:
        PayloadDecodeError: If the bytes are not UTF-8 JSON
    """
    try:
        return json.loads(str(payload, "utf-8"))
    except UnicodeDecodeError as e:
        raise PayloadDecodeError(f"Status is not UTF-8: {e}")
    except json.JSONDecodeError as e:
        raise PayloadDecodeError(f"Status is not JSON: {e}")
