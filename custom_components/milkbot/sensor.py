"""Sensor platform for the Milkbot integration."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Final

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfLength
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DATA_COORDINATOR, DOMAIN
from .coordinator import MilkbotDataCoordinator
from .entity import MilkbotEntity
from .models import ConnectionState, TelemetrySnapshot
from .telemetry import (
    format_position,
    format_ticks,
    gripper_status_name,
    homing_status_name,
    phasing_status_name,
    tool_type_name,
)

CONNECTION_STATE_OPTIONS: Final = [state.value for state in ConnectionState]


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Milkbot sensors based on a config entry."""
    coordinator = hass.data[DOMAIN][entry.entry_id][DATA_COORDINATOR]
    entities: list[SensorEntity] = [
        MilkbotSequenceSensor(coordinator),
        MilkbotStatusNameSensor(coordinator, "tool_type", lambda s: tool_type_name(s.tool_type)),
    ]
    for axis in ("a", "b", "c", "all"):
        entities.append(
            MilkbotStatusNameSensor(
                coordinator,
                f"homing_{axis}",
                lambda s, field=f"homing_{axis}": homing_status_name(getattr(s, field)),
                raw_field=f"homing_{axis}",
            )
        )
        entities.append(
            MilkbotStatusNameSensor(
                coordinator,
                f"phasing_{axis}",
                lambda s, field=f"phasing_{axis}": phasing_status_name(getattr(s, field)),
                raw_field=f"phasing_{axis}",
            )
        )
    for gripper in ("upper_gripper", "lower_gripper"):
        entities.append(
            MilkbotStatusNameSensor(
                coordinator,
                gripper,
                lambda s, field=gripper: gripper_status_name(getattr(s, field)),
                raw_field=gripper,
            )
        )
    for axis in ("a", "b", "c"):
        entities.append(MilkbotTicksSensor(coordinator, axis))
    for axis in ("x", "y", "z"):
        entities.append(MilkbotPositionSensor(coordinator, "position", axis))
        entities.append(MilkbotPositionSensor(coordinator, "platform_position", axis))
    entities.extend(
        [
            MilkbotConnectionStateSensor(coordinator),
            MilkbotStaleReadsSensor(coordinator),
            MilkbotLocationCountSensor(coordinator),
        ]
    )
    async_add_entities(entities)


class MilkbotSensor(MilkbotEntity, SensorEntity):
    """Base sensor for Milkbot."""

    def __init__(self, coordinator: MilkbotDataCoordinator, entity_key: str) -> None:
        super().__init__(coordinator, entity_key)


class MilkbotSequenceSensor(MilkbotSensor):
    """Status frame sequence number; stops changing when the firmware stalls."""

    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_entity_registry_enabled_default = False

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "sequence")

    @property
    def native_value(self) -> int | None:
        if not self.telemetry:
            return None
        return self.telemetry.sequence


class MilkbotStatusNameSensor(MilkbotSensor):
    """Display name of an enum field of the status frame."""

    def __init__(
        self,
        coordinator: MilkbotDataCoordinator,
        entity_key: str,
        name_fn: Callable[[TelemetrySnapshot], str],
        raw_field: str | None = None,
    ) -> None:
        super().__init__(coordinator, entity_key)
        self._name_fn = name_fn
        self._raw_field = raw_field or entity_key

    @property
    def native_value(self) -> str | None:
        """Return the display name, or None while the field is absent."""
        telemetry = self.telemetry
        if telemetry is None or getattr(telemetry, self._raw_field) is None:
            return None
        return self._name_fn(telemetry)

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        telemetry = self.telemetry
        if telemetry is None:
            return None
        raw = getattr(telemetry, self._raw_field)
        return {"raw_value": int(raw)} if raw is not None else None


class MilkbotTicksSensor(MilkbotSensor):
    """Encoder position of one arm axis."""

    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_entity_registry_enabled_default = False

    def __init__(self, coordinator: MilkbotDataCoordinator, axis: str) -> None:
        super().__init__(coordinator, f"ticks_{axis}")
        self._axis = axis

    @property
    def native_value(self) -> int | None:
        if not self.telemetry or self.telemetry.position_ticks is None:
            return None
        return getattr(self.telemetry.position_ticks, self._axis)

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        if not self.telemetry:
            return None
        return {"all_axes": format_ticks(self.telemetry.position_ticks)}


class MilkbotPositionSensor(MilkbotSensor):
    """One coordinate of the arm or platform position, in meters."""

    _attr_device_class = SensorDeviceClass.DISTANCE
    _attr_native_unit_of_measurement = UnitOfLength.METERS
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 3

    def __init__(self, coordinator: MilkbotDataCoordinator, field: str, axis: str) -> None:
        super().__init__(coordinator, f"{field}_{axis}")
        self._field = field
        self._axis = axis

    @property
    def native_value(self) -> float | None:
        if not self.telemetry:
            return None
        point = getattr(self.telemetry, self._field)
        if point is None:
            return None
        return round(getattr(point, self._axis), 4)

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        if not self.telemetry:
            return None
        return {"all_axes": format_position(getattr(self.telemetry, self._field))}


class MilkbotConnectionStateSensor(MilkbotSensor):
    """Link state: disconnected, connecting or connected."""

    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = CONNECTION_STATE_OPTIONS
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _requires_connection = False

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "connection_state")

    @property
    def native_value(self) -> str:
        return self.coordinator.connection.state.value

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        last_error = self.coordinator.connection.last_error
        return {"last_error": str(last_error) if last_error else None}


class MilkbotStaleReadsSensor(MilkbotSensor):
    """Consecutive status reads with an unchanged sequence number."""

    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_entity_registry_enabled_default = False
    _requires_connection = False

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "stale_reads")

    @property
    def native_value(self) -> int:
        return self.coordinator.synchronizer.stale_count


class MilkbotLocationCountSensor(MilkbotSensor):
    """Number of locations in the stored platform map."""

    _attr_state_class = SensorStateClass.MEASUREMENT
    _requires_connection = False

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "location_count")

    @property
    def native_value(self) -> int:
        return len(self.coordinator.map_document.body.locations)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        document = self.coordinator.map_document
        return {
            "map_name": document.map_name,
            "site_name": document.body.site_name,
            "platform_number": document.platform_number,
            "map_time": document.map_time,
        }
