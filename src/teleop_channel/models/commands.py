"""
Operator Commands
=================

Tagged command variants issued by the operator console.

Every command shares ``op`` (operation name) and ``data`` (the RobotData
snapshot current when the command was built) and adds a payload specific
to its variant:

    - OperationCommand: bare named action, no payload
    - SetJointsCommand: ``joints``, target joint angles in degrees
    - SetTagCommand: ``tag``, calibration tag identifier

Commands are frozen. ``to_message()`` gives the ``message`` field of the
outbound envelope; the ``kind`` discriminator stays local.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from teleop_channel.models.telemetry import RobotData


class Operation(str, Enum):
    """Named actions understood by the robot."""

    ASK_FOR_MANUAL = "ask_for_manual"
    ASK_FOR_IDLE = "ask_for_idle"
    MANUAL_VACUUM_ON = "manual_vacuum_on"
    MANUAL_VACUUM_OFF = "manual_vacuum_off"
    GO_HOME_SAFELY = "go_home_safely"
    CALIBRATION_TAG_DETECTION = "calibration/tag_detection"
    # wire value as accepted by the robot
    CALIBRATION_TAG_CALIBRATION = "calibartion/tag_calibration"


class _CommandBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: str = Field(..., min_length=1)
    data: RobotData = None

    def to_message(self) -> Dict[str, Any]:
        """Wire form of the command, without the local discriminator."""
        return self.model_dump(mode="json", exclude={"kind"})


class OperationCommand(_CommandBase):
    kind: Literal["operation"] = "operation"


class SetJointsCommand(_CommandBase):
    kind: Literal["set_joints"] = "set_joints"
    op: str = "set_joints"
    joints: List[float]


class SetTagCommand(_CommandBase):
    kind: Literal["set_tag"] = "set_tag"
    op: str = "set_tag"
    tag: int


OperatorCommand = Annotated[
    Union[OperationCommand, SetJointsCommand, SetTagCommand],
    Field(discriminator="kind"),
]
