"""Constants for the Milkbot integration."""

from __future__ import annotations

from typing import Final

from .models import GripperStatus, HomingStatus, PhasingStatus, ToolType

DOMAIN = "milkbot"

# Platforms to load
PLATFORMS: list[str] = [
    "sensor",
    "binary_sensor",
    "button",
]

# Config entry data keys
CONF_ADDRESS = "address"
CONF_NAME_FILTER = "name_filter"
CONF_ROBOT_NAME = "robot_name"

# Options keys
OPT_OPERATION_TIMEOUT = "operation_timeout"
OPT_DEBUG_LOGGING = "debug_logging"
OPT_TRAFFIC_RECORDING = "traffic_recording"

# Defaults
DEFAULT_OPERATION_TIMEOUT = 10.0
DEFAULT_DEBUG_LOGGING = False
DEFAULT_TRAFFIC_RECORDING = False
MIN_OPERATION_TIMEOUT = 1.0
MAX_OPERATION_TIMEOUT = 60.0

# Status polling
STATUS_POLL_INTERVAL_SECONDS = 1.0
# Consecutive reads with an unchanged sequence number before the link is
# considered wedged and torn down.
STALE_READ_LIMIT = 3000

# Status frame size when every field group is present
STATUS_FRAME_LENGTH = 54

# ---------------------------------------------------------------------------
# GATT layout (must match the robot firmware)
# ---------------------------------------------------------------------------

STATUS_SERVICE_UUID: Final = "5c3b4a45-41a2-4d28-afc6-b593a85a3580"
STATUS_CHARACTERISTIC_UUID: Final = "5c3b4a45-41a2-4d28-afc6-b593a85a3583"
ROLE_ASSIGNMENT_STATUS_UUID: Final = "5c3b4a45-41a2-4d28-afc6-b593a85a3584"
TASK_STATE_STATUS_UUID: Final = "5c3b4a45-41a2-4d28-afc6-b593a85a3589"

CMD_SERVICE_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb0"
CMD_PHASING_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb1"
CMD_HOMING_PER_AXIS_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb2"
CMD_MOVE_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb3"
CMD_MOTOR_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb5"
CMD_STOP_MOVE_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb6"
CMD_GRIPPER_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb7"
CMD_ASSIGN_TASK_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb8"
CMD_PREPARE_FOR_MAPPING_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccb9"
CMD_HOMING_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccc0"
CMD_STOP_TASK_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817ccc1"
CMD_PREPARE_FOR_ROBOT_TEST_UUID: Final = "f1d19eaf-37a1-48c2-b226-e9f9e817cccb"

SET_SERVICE_UUID: Final = "d4723a2d-37c8-4197-8a4b-3974084cd054"
SET_ROLE_ASSIGNMENT_UUID: Final = "d4723a2d-37c8-4197-8a4b-3974084cd056"
SET_IS_NEGATIVE_UUID: Final = "d4723a2d-37c8-4197-8a4b-3974084cd058"
SET_PLATFORM_MAP1_UUID: Final = "d4723a2d-37c8-4197-8a4b-3974084cd060"
SET_PLATFORM_MAP2_UUID: Final = "d4723a2d-37c8-4197-8a4b-3974084cd061"

# ---------------------------------------------------------------------------
# Map document
# ---------------------------------------------------------------------------

MAP_STORAGE_VERSION = 1
MAP_STORAGE_KEY_PREFIX = f"{DOMAIN}.map"
# Replaces an X coordinate of exactly 0.0 so the firmware can tell
# "at origin" from "not set".
X_ZERO_SENTINEL = 0.001
DEFAULT_MAP_NAME = "New Map"
DEFAULT_PLATFORM_NUMBER = 1

# Robot role numbers accepted by prepare-for-test / prepare-for-mapping
MIN_ROBOT_ROLE = 1
MAX_ROBOT_ROLE = 7

# hass.data storage keys
DATA_COORDINATOR = "coordinator"
DATA_MAP_STORE = "map_store"

# Diagnostics traffic recording
TRAFFIC_RECORDING_MAX_SIZE_BYTES = 5 * 1024 * 1024  # 5 MB

TOOL_TYPE_NAMES: dict[int, str] = {
    ToolType.UNKNOWN: "Unknown",
    ToolType.GRIPPER: "Gripper",
    ToolType.VACUUM: "Vacuum",
    ToolType.BRUSH_SPRAY: "Brush Spray",
    ToolType.CAMERA_SPRAY: "Camera Spray",
}

HOMING_STATUS_NAMES: dict[int, str] = {
    HomingStatus.OK: "OK",
    HomingStatus.FAIL: "Failed",
    HomingStatus.NOT_DONE: "Not Done",
}

PHASING_STATUS_NAMES: dict[int, str] = {
    PhasingStatus.DONE: "Done",
    PhasingStatus.IN_PROCESS: "In Progress",
    PhasingStatus.NOT_DONE: "Not Done",
}

GRIPPER_STATUS_NAMES: dict[int, str] = {
    GripperStatus.OPEN: "Open",
    GripperStatus.CLOSE: "Closed",
}
