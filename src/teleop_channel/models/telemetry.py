"""
Telemetry Data Models
=====================

Values republished to subscribers of the telemetry broadcast channels.

    - RobotImageData: raw color frame bytes plus declared MIME type
    - RobotState: robot state document (``joints`` in radians, rest open)
    - RobotData: opaque status document (any JSON value), passed through unparsed
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict


RobotData = Any

JPEG_MIME_TYPE = "image/jpg"


@dataclass(frozen=True, slots=True)
class RobotImageData:
    """
    Encoded color frame as received from the robot.

    Attributes:
        data: JPEG bytes, not decoded
        mime_type: Declared MIME type of ``data``
    """

    data: bytes
    mime_type: str = JPEG_MIME_TYPE

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the full image."""
        return f"RobotImageData(mime_type={self.mime_type!r}, size={len(self.data)})"


class RobotState(BaseModel):
    """
    Robot state document from the ``state`` exchange.

    The document is stored as sent, so ``model_dump()`` returns it
    verbatim. ``joints`` is read from it on access and is None unless the
    document carries a list of numbers under that key.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    @property
    def joints(self) -> Optional[List[float]]:
        value = (self.__pydantic_extra__ or {}).get("joints")
        if not isinstance(value, list):
            return None
        if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in value):
            return None
        return [float(v) for v in value]
