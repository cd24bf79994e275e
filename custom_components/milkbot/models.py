"""Data model for the Milkbot channel layer.

Enum values are the robot firmware's wire values. Decoded telemetry keeps
raw ints for values the firmware sends that are not listed here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum, IntFlag, StrEnum


def utc_timestamp() -> str:
    """Return the current UTC time as ISO-8601 with milliseconds and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConnectionState(StrEnum):
    """Link state owned by RobotConnection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ToolType(IntEnum):
    """Tool currently held by the arm."""

    UNKNOWN = 0
    GRIPPER = 1
    VACUUM = 2
    BRUSH_SPRAY = 3
    CAMERA_SPRAY = 4


class HomingStatus(IntEnum):
    """Per-axis homing result."""

    FAIL = -2
    NOT_DONE = 0
    OK = 100


class PhasingStatus(IntEnum):
    """Per-axis auto-phasing progress."""

    NOT_DONE = 0
    IN_PROCESS = 1
    DONE = 2


class GripperStatus(IntEnum):
    """Gripper jaw state."""

    OPEN = 0
    CLOSE = 1


class ActionRequest(IntFlag):
    """Bit flags in the action-request byte of the status frame."""

    NONE = 0
    BRUSH_SPRAY = 1
    CAMERA_SPRAY = 2
    VACUUM = 4
    MILK_METER_START = 8
    UDDER_LEARNING_DATA = 16
    STALL_LOCATION_LEARNING_DATA = 32
    ROBOT_TESTS_MODE = 64
    ROBOT_MAPPING_MODE = 128


class LocationType(IntEnum):
    """Kind of station a map location points at."""

    UNKNOWN = 0
    MILK_STALL = 1
    PARKING = 2
    BRUSHER_STATION = 3
    DIPPER_STATION = 4
    WASH_STATION = 5
    LEFT_CUP = 6
    RIGHT_CUP = 7


class MotorType(IntEnum):
    """Motor selector for stop-move commands."""

    A = 0
    B = 1
    C = 2
    ALL = 3
    ARM_ONLY = 4


class RobotTaskType(IntEnum):
    """Task ids accepted by the assign-task channel.

    Only the production tasks and the test tasks still in use are listed;
    ``AssignTaskCommand`` also accepts any raw int.
    """

    UNKNOWN = 0
    GOING_TO_STALL = 1
    GOING_TO_PARKING = 2
    ATTACHING = 3
    STOPPING_MOTION = 5
    GOING_TO_BRUSH_STATION = 6
    TAKE_BRUSHER = 7
    RETURN_BRUSHER = 8
    BRUSH = 9
    GOING_TO_DIPPER_STATION = 10
    TAKE_DIPPER = 11
    RETURN_DIPPER = 12
    DIP = 13
    DO_HOMING = 14
    ASSUME_BASE_POSITION = 15
    PREPARE_FOR_HOMING = 16
    TAKE_CUPS_FOR_TESTING = 18
    RELEASE_GRIPPERS_FOR_TESTING = 19
    SET_GRIPPERS_STATE_FOR_TESTING = 22
    SET_MOTORS_STATE_FOR_TESTING = 29
    FOLD_ARM_FOR_TESTING = 31
    PREPARE_FOR_MAPPING_FOR_TESTING = 33
    LEARN_LOCATION_FOR_TESTING = 34
    HOME_PER_AXIS_FOR_TESTING = 35
    GOING_TO_WASH_STATION = 37
    WASH = 40
    MOVE_PTP_FOR_TESTING = 44
    PHASE_AXES_FOR_TESTING = 46
    RESET_MOTION_CONTROLLER_FOR_TESTING = 47
    PREPARE_FOR_ROBOT_TESTS_FOR_TESTING = 48
    RELEASE_TOOL = 57


@dataclass(frozen=True, slots=True)
class Ticks3D:
    """Encoder positions of the three arm axes."""

    a: int
    b: int
    c: int


@dataclass(frozen=True, slots=True)
class Point3D:
    """Position in meters."""

    x: float
    y: float
    z: float


@dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """One decoded status frame.

    ``None`` means the frame was too short to carry the field. Callers must
    treat it as unknown, not as zero or False.
    """

    sequence: int | None = None
    action_requests: int | None = None
    tool_type: int | None = None
    motor_a_power: bool | None = None
    motor_b_power: bool | None = None
    motor_c_power: bool | None = None
    homing_a: int | None = None
    homing_b: int | None = None
    homing_c: int | None = None
    homing_all: int | None = None
    phasing_a: int | None = None
    phasing_b: int | None = None
    phasing_c: int | None = None
    phasing_all: int | None = None
    upper_gripper: int | None = None
    lower_gripper: int | None = None
    position_ticks: Ticks3D | None = None
    position: Point3D | None = None
    platform_position: Point3D | None = None
    has_map: bool | None = None


@dataclass(frozen=True, slots=True)
class Location:
    """Station reference of a map location."""

    type: int = LocationType.UNKNOWN
    id: int = 0


@dataclass(frozen=True, slots=True)
class LocationEntry:
    """One ordered location of a platform map."""

    index: int
    location: Location = field(default_factory=Location)
    x: float = 0.001
    y: float = 0.0
    z: float = 0.0


@dataclass(frozen=True, slots=True)
class MapBody:
    """Platform description and its locations."""

    platform_id: str | None = None
    is_negative: bool = False
    farm_id: int = 0
    site_name: str = ""
    locations: tuple[LocationEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class MapDocument:
    """Persisted platform map."""

    platform_number: int
    map_time: str
    map_name: str
    is_active: bool = False
    body: MapBody = field(default_factory=MapBody)
