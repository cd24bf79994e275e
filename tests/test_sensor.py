"""Tests for the Milkbot sensor platform."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from homeassistant.components.sensor import SensorDeviceClass
from homeassistant.const import UnitOfLength

from custom_components.milkbot.exceptions import ErrorKind
from custom_components.milkbot.map_document import add_location, new_map_document
from custom_components.milkbot.models import ConnectionState
from custom_components.milkbot.sensor import (
    CONNECTION_STATE_OPTIONS,
    MilkbotConnectionStateSensor,
    MilkbotLocationCountSensor,
    MilkbotPositionSensor,
    MilkbotSequenceSensor,
    MilkbotStaleReadsSensor,
    MilkbotStatusNameSensor,
    MilkbotTicksSensor,
)
from custom_components.milkbot.telemetry import (
    decode_status,
    homing_status_name,
    tool_type_name,
)
from tests.conftest import MOCK_ADDRESS, build_status_frame


@pytest.fixture
def coord(mock_coordinator: MagicMock) -> MagicMock:
    mock_coordinator.data = decode_status(build_status_frame(sequence=42))
    return mock_coordinator


class TestEntityBase:
    def test_unique_id_and_translation_key(self, coord: MagicMock) -> None:
        entity = MilkbotSequenceSensor(coord)
        assert entity.unique_id == f"{MOCK_ADDRESS}_sequence"
        assert entity.translation_key == "sequence"

    def test_unique_id_falls_back_to_entry_id(self, coord: MagicMock) -> None:
        coord.entry.data = {}
        entity = MilkbotSequenceSensor(coord)
        assert entity.unique_id == "test_entry_id_sequence"

    def test_unavailable_while_disconnected(self, coord: MagicMock) -> None:
        entity = MilkbotSequenceSensor(coord)
        assert entity.available is True
        coord.connection.is_connected = False
        assert entity.available is False

    def test_device_info(self, coord: MagicMock) -> None:
        info = MilkbotSequenceSensor(coord).device_info
        assert info["name"] == "Milkbot-07"
        assert ("milkbot", MOCK_ADDRESS) in info["identifiers"]


class TestSequenceSensor:
    def test_value(self, coord: MagicMock) -> None:
        assert MilkbotSequenceSensor(coord).native_value == 42

    def test_no_telemetry(self, coord: MagicMock) -> None:
        coord.data = None
        assert MilkbotSequenceSensor(coord).native_value is None

    def test_disabled_by_default(self, coord: MagicMock) -> None:
        assert MilkbotSequenceSensor(coord).entity_registry_enabled_default is False


class TestStatusNameSensor:
    def test_tool_type(self, coord: MagicMock) -> None:
        entity = MilkbotStatusNameSensor(coord, "tool_type", lambda s: tool_type_name(s.tool_type))
        assert entity.native_value == "Gripper"
        assert entity.extra_state_attributes == {"raw_value": 1}

    def test_homing_with_raw_field(self, coord: MagicMock) -> None:
        entity = MilkbotStatusNameSensor(
            coord,
            "homing_c",
            lambda s: homing_status_name(s.homing_c),
            raw_field="homing_c",
        )
        assert entity.native_value == "Failed"
        assert entity.extra_state_attributes == {"raw_value": -2}

    def test_absent_field_is_unknown(self, coord: MagicMock) -> None:
        coord.data = decode_status(build_status_frame()[:3])
        entity = MilkbotStatusNameSensor(coord, "tool_type", lambda s: tool_type_name(s.tool_type))
        assert entity.native_value is None
        assert entity.extra_state_attributes is None


class TestPositionSensors:
    def test_ticks(self, coord: MagicMock) -> None:
        assert MilkbotTicksSensor(coord, "b").native_value == -2000

    def test_arm_position(self, coord: MagicMock) -> None:
        entity = MilkbotPositionSensor(coord, "position", "z")
        assert entity.native_value == -0.75
        assert entity.device_class == SensorDeviceClass.DISTANCE
        assert entity.native_unit_of_measurement == UnitOfLength.METERS
        assert entity.translation_key == "position_z"

    def test_platform_position(self, coord: MagicMock) -> None:
        assert MilkbotPositionSensor(coord, "platform_position", "y").native_value == 2.0

    def test_truncated_frame(self, coord: MagicMock) -> None:
        coord.data = decode_status(build_status_frame()[:30])
        assert MilkbotTicksSensor(coord, "a").native_value == 1000
        assert MilkbotPositionSensor(coord, "position", "x").native_value is None

    def test_all_axes_attribute(self, coord: MagicMock) -> None:
        ticks = MilkbotTicksSensor(coord, "a")
        position = MilkbotPositionSensor(coord, "position", "x")
        assert ticks.extra_state_attributes == {"all_axes": "A: 1000, B: -2000, C: 3"}
        assert position.extra_state_attributes == {
            "all_axes": "X: 0.50, Y: 1.25, Z: -0.75"
        }

        coord.data = decode_status(build_status_frame()[:30])
        assert position.extra_state_attributes == {"all_axes": "N/A"}

        coord.data = None
        assert ticks.extra_state_attributes is None


class TestDiagnosticSensors:
    def test_connection_state(self, coord: MagicMock) -> None:
        coord.connection.state = ConnectionState.DISCONNECTED
        coord.connection.is_connected = False
        coord.connection.last_error = ErrorKind.STALENESS_LIMIT_EXCEEDED
        entity = MilkbotConnectionStateSensor(coord)

        assert entity.available is True
        assert entity.native_value == "disconnected"
        assert entity.extra_state_attributes == {"last_error": "staleness_limit_exceeded"}
        assert entity.options == CONNECTION_STATE_OPTIONS

    def test_stale_reads(self, coord: MagicMock) -> None:
        coord.synchronizer.stale_count = 17
        assert MilkbotStaleReadsSensor(coord).native_value == 17

    def test_location_count(self, coord: MagicMock) -> None:
        coord.map_document = add_location(add_location(new_map_document()), x=1.0)
        coord.connection.is_connected = False
        entity = MilkbotLocationCountSensor(coord)

        assert entity.available is True
        assert entity.native_value == 2
        assert entity.extra_state_attributes["map_name"] == "New Map"
