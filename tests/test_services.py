"""Tests for Milkbot integration services."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import voluptuous as vol
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import device_registry as dr
from pytest_homeassistant_custom_component.common import MockConfigEntry

from custom_components.milkbot.commands import (
    AssignTaskCommand,
    GripperCommand,
    HomingCommand,
    PrepareForMappingCommand,
    PrepareForTestCommand,
    StopMoveCommand,
)
from custom_components.milkbot.const import DATA_COORDINATOR, DOMAIN
from custom_components.milkbot.exceptions import CommandResult, ErrorKind, InvalidMapDocument
from custom_components.milkbot.map_document import add_location, update_map_info
from custom_components.milkbot.map_store import MapStore
from custom_components.milkbot.models import MotorType
from custom_components.milkbot.services import (
    SERVICE_NAMES,
    async_register_services,
    async_unregister_services,
)
from tests.conftest import MOCK_ADDRESS, MOCK_CONFIG_ENTRY_DATA, MOCK_ROBOT_NAME


@pytest.fixture
async def setup(hass: HomeAssistant) -> tuple[str, MagicMock]:
    """Register services against one mocked robot; return (device_id, coordinator)."""
    entry = MockConfigEntry(domain=DOMAIN, data=MOCK_CONFIG_ENTRY_DATA, unique_id=MOCK_ADDRESS)
    entry.add_to_hass(hass)
    device = dr.async_get(hass).async_get_or_create(
        config_entry_id=entry.entry_id,
        identifiers={(DOMAIN, MOCK_ADDRESS)},
        name=MOCK_ROBOT_NAME,
    )

    coordinator = MagicMock()
    coordinator.entry = entry
    coordinator.map_store = MapStore(hass, entry.entry_id)
    coordinator.async_send_command = AsyncMock(return_value=CommandResult.ok())
    coordinator.async_send_map = AsyncMock(return_value=CommandResult.ok())
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {DATA_COORDINATOR: coordinator}

    async_register_services(hass)
    return device.id, coordinator


async def _call(
    hass: HomeAssistant, service: str, data: dict[str, Any], **kwargs: Any
) -> Any:
    return await hass.services.async_call(DOMAIN, service, data, blocking=True, **kwargs)


class TestServiceRegistration:
    async def test_services_are_registered(self, hass: HomeAssistant) -> None:
        async_register_services(hass)
        for name in SERVICE_NAMES:
            assert hass.services.has_service(DOMAIN, name)

    async def test_services_not_duplicated(self, hass: HomeAssistant) -> None:
        async_register_services(hass)
        async_register_services(hass)
        assert hass.services.has_service(DOMAIN, "homing")

    async def test_services_unregistered(self, hass: HomeAssistant) -> None:
        async_register_services(hass)
        async_unregister_services(hass)
        for name in SERVICE_NAMES:
            assert not hass.services.has_service(DOMAIN, name)


class TestCommandServices:
    async def test_assign_task(self, hass: HomeAssistant, setup: tuple[str, MagicMock]) -> None:
        device_id, coordinator = setup
        await _call(hass, "assign_task", {"device_id": device_id, "location_id": 4, "task_type": 1})
        coordinator.async_send_command.assert_awaited_once_with(
            AssignTaskCommand(location_id=4, task_type=1)
        )

    async def test_stop_move_defaults_to_all(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        await _call(hass, "stop_move", {"device_id": device_id})
        coordinator.async_send_command.assert_awaited_once_with(StopMoveCommand(MotorType.ALL))

    async def test_homing_and_gripper(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        await _call(hass, "homing", {"device_id": device_id})
        await _call(hass, "gripper", {"device_id": device_id, "open": False})
        sent = [c.args[0] for c in coordinator.async_send_command.await_args_list]
        assert sent == [HomingCommand(), GripperCommand(open=False)]

    async def test_prepare_for_test(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        await _call(hass, "prepare_for_test", {"device_id": device_id, "robot_number": 3})
        coordinator.async_send_command.assert_awaited_once_with(
            PrepareForTestCommand(robot_number=3, negative_platform=False)
        )

    async def test_prepare_for_test_role_out_of_range(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, _coordinator = setup
        with pytest.raises(vol.Invalid):
            await _call(hass, "prepare_for_test", {"device_id": device_id, "robot_number": 8})

    async def test_prepare_for_mapping_defaults_device_name(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        await _call(hass, "prepare_for_mapping", {"device_id": device_id, "role": 2})
        command = coordinator.async_send_command.await_args.args[0]
        assert isinstance(command, PrepareForMappingCommand)
        assert command.role == 2
        assert command.device_name == MOCK_ROBOT_NAME

    async def test_failed_command_raises(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        coordinator.async_send_command.return_value = CommandResult.failed(
            ErrorKind.WRITE_UNSUPPORTED, "Channel is not writable"
        )
        with pytest.raises(HomeAssistantError, match="write_unsupported"):
            await _call(hass, "stop_task", {"device_id": device_id})

    async def test_unknown_device(self, hass: HomeAssistant, setup: tuple[str, MagicMock]) -> None:
        with pytest.raises(ServiceValidationError):
            await _call(hass, "homing", {"device_id": "does-not-exist"})


class TestMapServices:
    async def test_add_and_export(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, _coordinator = setup
        await _call(
            hass,
            "add_location",
            {"device_id": device_id, "location_type": 1, "location_id": 9, "x": 0, "y": 1.5},
        )

        response = await _call(hass, "export_map", {"device_id": device_id}, return_response=True)

        location = response["Map"]["Locations"][0]
        assert location["Index"] == 1
        assert location["Location"] == {"Type": 1, "ID": 9}
        assert location["XLocationInMeters"] == 0.001
        assert location["YLocationInMeters"] == 1.5

    async def test_remove_uses_one_based_index(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        for location_id in (1, 2, 3):
            await _call(hass, "add_location", {"device_id": device_id, "location_id": location_id})

        await _call(hass, "remove_location", {"device_id": device_id, "index": 1})

        ids = [e.location.id for e in coordinator.map_store.document.body.locations]
        assert ids == [2, 3]

    async def test_remove_out_of_range(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, _coordinator = setup
        with pytest.raises(ServiceValidationError):
            await _call(hass, "remove_location", {"device_id": device_id, "index": 3})

    async def test_move_location(self, hass: HomeAssistant, setup: tuple[str, MagicMock]) -> None:
        device_id, coordinator = setup
        for location_id in (1, 2):
            await _call(hass, "add_location", {"device_id": device_id, "location_id": location_id})

        await _call(
            hass, "move_location", {"device_id": device_id, "index": 2, "direction": "up"}
        )

        ids = [e.location.id for e in coordinator.map_store.document.body.locations]
        assert ids == [2, 1]

    async def test_update_location(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        await _call(hass, "add_location", {"device_id": device_id, "location_id": 1})

        await _call(hass, "update_location", {"device_id": device_id, "index": 1, "z": 0.25})

        assert coordinator.map_store.document.body.locations[0].z == 0.25

    async def test_update_map_info(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        await _call(
            hass, "update_map_info", {"device_id": device_id, "map_name": "East", "farm_id": 2}
        )
        document = coordinator.map_store.document
        assert document.map_name == "East"
        assert document.body.farm_id == 2

    async def test_update_map_info_requires_a_field(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, _coordinator = setup
        with pytest.raises(ServiceValidationError):
            await _call(hass, "update_map_info", {"device_id": device_id})

    async def test_new_map(self, hass: HomeAssistant, setup: tuple[str, MagicMock]) -> None:
        device_id, coordinator = setup
        await coordinator.map_store.async_set_document(
            add_location(update_map_info(coordinator.map_store.document, map_name="Old"))
        )

        await _call(hass, "new_map", {"device_id": device_id})

        assert coordinator.map_store.document.map_name == "New Map"
        assert coordinator.map_store.document.body.locations == ()

    async def test_import_map(self, hass: HomeAssistant, setup: tuple[str, MagicMock]) -> None:
        device_id, coordinator = setup
        document = {
            "PlatformNumber": 3,
            "MapName": "Imported",
            "Map": {"IsNegative": False, "FarmId": 1, "SiteName": "Barn", "Locations": []},
        }

        await _call(hass, "import_map", {"device_id": device_id, "map": document})

        assert coordinator.map_store.document.map_name == "Imported"
        assert coordinator.map_store.document.platform_number == 3

    async def test_import_invalid_map(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, _coordinator = setup
        with pytest.raises(ServiceValidationError, match="Invalid map document"):
            await _call(
                hass, "import_map", {"device_id": device_id, "map": {"MapName": "No platform"}}
            )

    async def test_send_map(self, hass: HomeAssistant, setup: tuple[str, MagicMock]) -> None:
        device_id, coordinator = setup
        await _call(hass, "send_map", {"device_id": device_id})
        coordinator.async_send_map.assert_awaited_once()

    async def test_send_map_not_ready(
        self, hass: HomeAssistant, setup: tuple[str, MagicMock]
    ) -> None:
        device_id, coordinator = setup
        coordinator.async_send_map.side_effect = InvalidMapDocument("Site name is required")
        with pytest.raises(ServiceValidationError, match="Site name"):
            await _call(hass, "send_map", {"device_id": device_id})
