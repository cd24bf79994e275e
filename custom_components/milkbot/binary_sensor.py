"""Binary sensor platform for the Milkbot integration."""

from __future__ import annotations

from collections.abc import Callable

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DATA_COORDINATOR, DOMAIN
from .coordinator import MilkbotDataCoordinator
from .entity import MilkbotEntity
from .models import TelemetrySnapshot
from .telemetry import is_in_test_mode, is_ready_for_mapping


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Milkbot binary sensors based on a config entry."""
    coordinator = hass.data[DOMAIN][entry.entry_id][DATA_COORDINATOR]
    async_add_entities(
        [
            MilkbotConnectedSensor(coordinator),
            MilkbotMotorPowerSensor(coordinator, "a"),
            MilkbotMotorPowerSensor(coordinator, "b"),
            MilkbotMotorPowerSensor(coordinator, "c"),
            MilkbotHasMapSensor(coordinator),
            MilkbotActionRequestSensor(coordinator, "test_mode", is_in_test_mode),
            MilkbotActionRequestSensor(coordinator, "ready_for_mapping", is_ready_for_mapping),
        ]
    )


class MilkbotBinarySensor(MilkbotEntity, BinarySensorEntity):
    """Base binary sensor for Milkbot."""

    def __init__(self, coordinator: MilkbotDataCoordinator, entity_key: str) -> None:
        super().__init__(coordinator, entity_key)


class MilkbotConnectedSensor(MilkbotBinarySensor):
    """On while the Bluetooth link to the robot is up."""

    _attr_device_class = BinarySensorDeviceClass.CONNECTIVITY
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _requires_connection = False

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "connected")

    @property
    def is_on(self) -> bool:
        return self.coordinator.connection.is_connected


class MilkbotMotorPowerSensor(MilkbotBinarySensor):
    """Motor power of one arm axis."""

    _attr_device_class = BinarySensorDeviceClass.POWER

    def __init__(self, coordinator: MilkbotDataCoordinator, axis: str) -> None:
        super().__init__(coordinator, f"motor_{axis}_power")
        self._field = f"motor_{axis}_power"

    @property
    def is_on(self) -> bool | None:
        if not self.telemetry:
            return None
        return getattr(self.telemetry, self._field)


class MilkbotHasMapSensor(MilkbotBinarySensor):
    """On when the robot reports a stored platform map."""

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "has_map")

    @property
    def is_on(self) -> bool | None:
        if not self.telemetry:
            return None
        return self.telemetry.has_map


class MilkbotActionRequestSensor(MilkbotBinarySensor):
    """One bit of the action-request flags."""

    def __init__(
        self,
        coordinator: MilkbotDataCoordinator,
        entity_key: str,
        predicate: Callable[[TelemetrySnapshot | None], bool],
    ) -> None:
        super().__init__(coordinator, entity_key)
        self._predicate = predicate

    @property
    def is_on(self) -> bool | None:
        """Return None (unknown) when the frame carried no action-request byte."""
        if not self.telemetry or self.telemetry.action_requests is None:
            return None
        return self._predicate(self.telemetry)
