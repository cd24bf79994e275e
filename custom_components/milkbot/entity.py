"""Base entity class for the Milkbot integration."""

from __future__ import annotations

from homeassistant.helpers.device_registry import CONNECTION_BLUETOOTH, DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import CONF_ADDRESS, CONF_ROBOT_NAME, DOMAIN
from .coordinator import MilkbotDataCoordinator
from .models import TelemetrySnapshot


class MilkbotEntity(CoordinatorEntity[MilkbotDataCoordinator]):
    """Base class for all Milkbot entities.

    Provides:
    - Shared device_info (one device per robot)
    - Unique ID pattern: {address or entry_id}_{entity_key}
    - Availability tied to the robot connection; set
      ``_requires_connection = False`` for entities that must stay
      available while disconnected
    """

    _attr_has_entity_name = True
    _requires_connection = True

    def __init__(
        self,
        coordinator: MilkbotDataCoordinator,
        entity_key: str,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self._attr_unique_id = f"{self._device_id}_{entity_key}"
        self._attr_translation_key = entity_key
        self._entity_key = entity_key

    @property
    def _device_id(self) -> str:
        entry = self.coordinator.entry
        return entry.data.get(CONF_ADDRESS) or entry.entry_id

    @property
    def device_info(self) -> DeviceInfo:
        """Return device information for the robot."""
        entry = self.coordinator.entry
        address = entry.data.get(CONF_ADDRESS)
        return DeviceInfo(
            identifiers={(DOMAIN, self._device_id)},
            connections={(CONNECTION_BLUETOOTH, address)} if address else set(),
            name=entry.data.get(CONF_ROBOT_NAME) or "Milkbot",
            manufacturer="Milkbot",
            model="Milking robot",
        )

    @property
    def available(self) -> bool:
        """Telemetry entities are unavailable while the robot is disconnected."""
        if not self._requires_connection:
            return True
        return super().available and self.coordinator.connection.is_connected

    @property
    def telemetry(self) -> TelemetrySnapshot | None:
        """Return the latest snapshot, or None if none was read yet."""
        return self.coordinator.data
