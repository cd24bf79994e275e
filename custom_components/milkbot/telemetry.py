"""Status frame decoding and telemetry helpers for the Milkbot integration."""

from __future__ import annotations

import logging
import struct
from collections.abc import Callable
from dataclasses import asdict
from enum import IntEnum
from typing import Any

from .const import (
    GRIPPER_STATUS_NAMES,
    HOMING_STATUS_NAMES,
    PHASING_STATUS_NAMES,
    TOOL_TYPE_NAMES,
)
from .models import (
    ActionRequest,
    GripperStatus,
    HomingStatus,
    PhasingStatus,
    Point3D,
    TelemetrySnapshot,
    Ticks3D,
    ToolType,
)

_LOGGER = logging.getLogger(__name__)


def _as_enum(enum_cls: type[IntEnum], value: int) -> int:
    """Return the enum member for a wire value, or the raw int if unknown."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _sequence(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"sequence": values[0]}


def _action_requests(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"action_requests": values[0]}


def _tool_type(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"tool_type": _as_enum(ToolType, values[0])}


def _motor_power(values: tuple[Any, ...]) -> dict[str, Any]:
    a, b, c = values
    return {"motor_a_power": a != 0, "motor_b_power": b != 0, "motor_c_power": c != 0}


def _homing(values: tuple[Any, ...]) -> dict[str, Any]:
    a, b, c, all_axes = (_as_enum(HomingStatus, v) for v in values)
    return {"homing_a": a, "homing_b": b, "homing_c": c, "homing_all": all_axes}


def _phasing(values: tuple[Any, ...]) -> dict[str, Any]:
    a, b, c, all_axes = (_as_enum(PhasingStatus, v) for v in values)
    return {"phasing_a": a, "phasing_b": b, "phasing_c": c, "phasing_all": all_axes}


def _grippers(values: tuple[Any, ...]) -> dict[str, Any]:
    upper, lower = (_as_enum(GripperStatus, v) for v in values)
    return {"upper_gripper": upper, "lower_gripper": lower}


def _ticks(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"position_ticks": Ticks3D(*values)}


def _position(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"position": Point3D(*values)}


def _platform_position(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"platform_position": Point3D(*values)}


def _has_map(values: tuple[Any, ...]) -> dict[str, Any]:
    return {"has_map": values[0] != 0}


# Field groups in wire order. A group is decoded only when the whole group
# fits in the remaining buffer.
_FIELD_GROUPS: tuple[tuple[str, struct.Struct, Callable[[tuple[Any, ...]], dict[str, Any]]], ...] = (
    ("sequence", struct.Struct("<H"), _sequence),
    ("action_requests", struct.Struct("<B"), _action_requests),
    ("tool_type", struct.Struct("<B"), _tool_type),
    ("motor_power", struct.Struct("<3B"), _motor_power),
    ("homing", struct.Struct("<4b"), _homing),
    ("phasing", struct.Struct("<4B"), _phasing),
    ("grippers", struct.Struct("<2B"), _grippers),
    ("position_ticks", struct.Struct("<3i"), _ticks),
    ("position", struct.Struct("<3f"), _position),
    ("platform_position", struct.Struct("<3f"), _platform_position),
    ("has_map", struct.Struct("<B"), _has_map),
)


def decode_status(buffer: bytes | bytearray | memoryview) -> TelemetrySnapshot:
    """Decode a status frame into a snapshot.

    Short frames (older firmware, truncated reads) decode to the prefix of
    field groups that fit; the rest stay None. Never raises.
    """
    data = bytes(buffer)
    fields: dict[str, Any] = {}
    offset = 0
    for name, layout, build in _FIELD_GROUPS:
        if len(data) - offset < layout.size:
            _LOGGER.debug(
                "Status frame truncated at %s (%d of %d bytes used)",
                name,
                offset,
                len(data),
            )
            break
        try:
            fields.update(build(layout.unpack_from(data, offset)))
        except (struct.error, ValueError, TypeError) as err:
            _LOGGER.warning("Failed to decode status field %s: %s", name, err)
            break
        offset += layout.size
    return TelemetrySnapshot(**fields)


def has_action_request(snapshot: TelemetrySnapshot | None, flag: int) -> bool:
    """Return True when the snapshot's action-request byte has ``flag`` set."""
    if snapshot is None or snapshot.action_requests is None:
        return False
    return (snapshot.action_requests & flag) != 0


def is_in_test_mode(snapshot: TelemetrySnapshot | None) -> bool:
    """Return True when the robot requests test mode."""
    return has_action_request(snapshot, ActionRequest.ROBOT_TESTS_MODE)


def is_ready_for_mapping(snapshot: TelemetrySnapshot | None) -> bool:
    """Return True when the robot is ready to learn map locations."""
    return has_action_request(snapshot, ActionRequest.ROBOT_MAPPING_MODE)


def tool_type_name(value: int | None) -> str:
    """Return a display name for a tool type."""
    return TOOL_TYPE_NAMES.get(value, "Unknown") if value is not None else "Unknown"


def homing_status_name(value: int | None) -> str:
    """Return a display name for a homing status."""
    return HOMING_STATUS_NAMES.get(value, "Unknown") if value is not None else "Unknown"


def phasing_status_name(value: int | None) -> str:
    """Return a display name for a phasing status."""
    return PHASING_STATUS_NAMES.get(value, "Unknown") if value is not None else "Unknown"


def gripper_status_name(value: int | None) -> str:
    """Return a display name for a gripper status."""
    return GRIPPER_STATUS_NAMES.get(value, "Unknown") if value is not None else "Unknown"


def format_position(point: Point3D | None) -> str:
    """Format a metric position as ``X: 1.00, Y: 2.00, Z: 3.00``."""
    if point is None:
        return "N/A"
    return f"X: {point.x:.2f}, Y: {point.y:.2f}, Z: {point.z:.2f}"


def format_ticks(ticks: Ticks3D | None) -> str:
    """Format axis encoder positions as ``A: 1, B: 2, C: 3``."""
    if ticks is None:
        return "N/A"
    return f"A: {ticks.a}, B: {ticks.b}, C: {ticks.c}"


def snapshot_as_dict(snapshot: TelemetrySnapshot | None) -> dict[str, Any]:
    """Return a JSON-friendly dict of a snapshot (empty when None)."""
    if snapshot is None:
        return {}
    return asdict(snapshot)
