"""
Test Configuration
==================

Pytest fixtures and test configuration for teleop_channel.
"""

import json

import cv2
import numpy as np
import pytest


@pytest.fixture
def credentials():
    """Robot identity used across connection tests."""
    return {"robot_name": "r2d2", "access_token": "abc"}


@pytest.fixture
def depth_raster():
    """Small 16-bit depth raster."""
    return np.arange(12, dtype=np.uint16).reshape(3, 4) * 1000


@pytest.fixture
def depth_png(depth_raster):
    """``depth_raster`` encoded as a 16-bit PNG."""
    ok, encoded = cv2.imencode(".png", depth_raster)
    assert ok
    return encoded.tobytes()


@pytest.fixture
def jpeg_bytes():
    """A real JPEG image (8x8 gray)."""
    ok, encoded = cv2.imencode(".jpg", np.full((8, 8, 3), 127, dtype=np.uint8))
    assert ok
    return encoded.tobytes()


@pytest.fixture
def status_document():
    """Sample robot status document."""
    return {"battery": 0.82, "mode": "manual", "tags": [6, 8, 11, 12]}


@pytest.fixture
def status_bytes(status_document):
    return json.dumps(status_document).encode("utf-8")
