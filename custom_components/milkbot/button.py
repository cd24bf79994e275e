"""Button platform for the Milkbot integration."""

from __future__ import annotations

from homeassistant.components.button import ButtonDeviceClass, ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .commands import Command, GripperCommand, HomingCommand, StopMoveCommand, StopTaskCommand
from .const import DATA_COORDINATOR, DOMAIN
from .coordinator import MilkbotDataCoordinator, raise_for_result
from .entity import MilkbotEntity
from .exceptions import InvalidMapDocument
from .models import MotorType


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Milkbot buttons based on a config entry."""
    coordinator = hass.data[DOMAIN][entry.entry_id][DATA_COORDINATOR]
    async_add_entities(
        [
            MilkbotCommandButton(coordinator, "homing", HomingCommand()),
            MilkbotCommandButton(coordinator, "stop_task", StopTaskCommand()),
            MilkbotCommandButton(coordinator, "stop_all_motors", StopMoveCommand(MotorType.ALL)),
            MilkbotCommandButton(coordinator, "open_gripper", GripperCommand(open=True)),
            MilkbotCommandButton(coordinator, "close_gripper", GripperCommand(open=False)),
            MilkbotSendMapButton(coordinator),
            MilkbotReconnectButton(coordinator),
        ]
    )


class MilkbotButton(MilkbotEntity, ButtonEntity):
    """Base button for Milkbot."""

    def __init__(self, coordinator: MilkbotDataCoordinator, entity_key: str) -> None:
        super().__init__(coordinator, entity_key)


class MilkbotCommandButton(MilkbotButton):
    """Sends one fixed command."""

    def __init__(
        self, coordinator: MilkbotDataCoordinator, entity_key: str, command: Command
    ) -> None:
        super().__init__(coordinator, entity_key)
        self._command = command

    async def async_press(self) -> None:
        result = await self.coordinator.async_send_command(self._command)
        raise_for_result(result, self._entity_key)


class MilkbotSendMapButton(MilkbotButton):
    """Send the stored platform map to the robot."""

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "send_map")

    async def async_press(self) -> None:
        try:
            result = await self.coordinator.async_send_map()
        except InvalidMapDocument as err:
            raise HomeAssistantError(f"Map is not ready to send: {err}") from err
        raise_for_result(result, "send_map")


class MilkbotReconnectButton(MilkbotButton):
    """Drop and re-open the Bluetooth link."""

    _attr_device_class = ButtonDeviceClass.RESTART
    _attr_entity_category = EntityCategory.CONFIG
    _requires_connection = False

    def __init__(self, coordinator: MilkbotDataCoordinator) -> None:
        super().__init__(coordinator, "reconnect")

    async def async_press(self) -> None:
        if not await self.coordinator.async_reconnect():
            raise HomeAssistantError("Could not reconnect to the robot")
