"""Service registration for the Milkbot integration."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import device_registry as dr

from .commands import (
    AssignTaskCommand,
    GripperCommand,
    HomingCommand,
    PrepareForMappingCommand,
    PrepareForTestCommand,
    StopMoveCommand,
    StopTaskCommand,
)
from .const import (
    CONF_NAME_FILTER,
    DATA_COORDINATOR,
    DOMAIN,
    MAX_ROBOT_ROLE,
    MIN_ROBOT_ROLE,
)
from .coordinator import MilkbotDataCoordinator, raise_for_result
from .exceptions import InvalidMapDocument
from .map_document import (
    add_location,
    map_document_to_dict,
    move_location_down,
    move_location_up,
    new_map_document,
    remove_location,
    update_location,
    update_map_info,
    validate_import,
)
from .models import LocationType, MapDocument, MotorType

_LOGGER = logging.getLogger(__name__)

SERVICE_ASSIGN_TASK = "assign_task"
SERVICE_STOP_MOVE = "stop_move"
SERVICE_STOP_TASK = "stop_task"
SERVICE_HOMING = "homing"
SERVICE_GRIPPER = "gripper"
SERVICE_PREPARE_FOR_TEST = "prepare_for_test"
SERVICE_PREPARE_FOR_MAPPING = "prepare_for_mapping"
SERVICE_SEND_MAP = "send_map"
SERVICE_IMPORT_MAP = "import_map"
SERVICE_EXPORT_MAP = "export_map"
SERVICE_NEW_MAP = "new_map"
SERVICE_ADD_LOCATION = "add_location"
SERVICE_REMOVE_LOCATION = "remove_location"
SERVICE_MOVE_LOCATION = "move_location"
SERVICE_UPDATE_LOCATION = "update_location"
SERVICE_UPDATE_MAP_INFO = "update_map_info"

_ROLE = vol.All(vol.Coerce(int), vol.Range(min=MIN_ROBOT_ROLE, max=MAX_ROBOT_ROLE))
_LOCATION_TYPE = vol.All(vol.Coerce(int), vol.In([int(t) for t in LocationType]))
_INDEX = vol.All(vol.Coerce(int), vol.Range(min=1))
_METERS = vol.Coerce(float)

SERVICE_DEVICE_ONLY_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
    }
)

SERVICE_ASSIGN_TASK_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("location_id"): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Required("task_type"): vol.All(vol.Coerce(int), vol.Range(min=0)),
    }
)

SERVICE_STOP_MOVE_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Optional("motor", default=int(MotorType.ALL)): vol.All(
            vol.Coerce(int), vol.In([int(m) for m in MotorType])
        ),
    }
)

SERVICE_GRIPPER_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("open"): bool,
    }
)

SERVICE_PREPARE_FOR_TEST_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("robot_number"): _ROLE,
        vol.Optional("negative_platform", default=False): bool,
    }
)

SERVICE_PREPARE_FOR_MAPPING_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("role"): _ROLE,
        vol.Optional("is_negative_platform", default=False): bool,
        vol.Optional("device_name"): str,
    }
)

SERVICE_IMPORT_MAP_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("map"): dict,
    }
)

SERVICE_ADD_LOCATION_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Optional("location_type", default=int(LocationType.UNKNOWN)): _LOCATION_TYPE,
        vol.Optional("location_id", default=0): vol.Coerce(int),
        vol.Optional("x", default=0.0): _METERS,
        vol.Optional("y", default=0.0): _METERS,
        vol.Optional("z", default=0.0): _METERS,
    }
)

SERVICE_REMOVE_LOCATION_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("index"): _INDEX,
    }
)

SERVICE_MOVE_LOCATION_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("index"): _INDEX,
        vol.Required("direction"): vol.In(["up", "down"]),
    }
)

SERVICE_UPDATE_LOCATION_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Required("index"): _INDEX,
        vol.Optional("location_type"): _LOCATION_TYPE,
        vol.Optional("location_id"): vol.Coerce(int),
        vol.Optional("x"): _METERS,
        vol.Optional("y"): _METERS,
        vol.Optional("z"): _METERS,
    }
)

SERVICE_UPDATE_MAP_INFO_SCHEMA = vol.Schema(
    {
        vol.Required("device_id"): str,
        vol.Optional("map_name"): str,
        vol.Optional("platform_number"): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("is_active"): bool,
        vol.Optional("platform_id"): str,
        vol.Optional("is_negative"): bool,
        vol.Optional("farm_id"): vol.All(vol.Coerce(int), vol.Range(min=0)),
        vol.Optional("site_name"): str,
    }
)


def _get_coordinator(hass: HomeAssistant, device_id: str) -> MilkbotDataCoordinator:
    """Resolve device_id to its coordinator or raise ServiceValidationError."""
    dev_reg = dr.async_get(hass)
    device = dev_reg.async_get(device_id)
    if device is None:
        raise ServiceValidationError(f"Device {device_id} not found")
    if not device.config_entries:
        raise ServiceValidationError(f"Device {device_id} has no config entry")
    for entry_id in device.config_entries:
        if entry_id in hass.data.get(DOMAIN, {}):
            return hass.data[DOMAIN][entry_id][DATA_COORDINATOR]
    raise ServiceValidationError(f"Device {device_id} is not managed by the Milkbot integration")


async def _edit_map(
    coordinator: MilkbotDataCoordinator,
    edit: Callable[[MapDocument], MapDocument],
) -> MapDocument:
    """Apply an edit to the stored map and persist the result."""
    try:
        document = edit(coordinator.map_store.document)
    except IndexError as err:
        raise ServiceValidationError(str(err)) from err
    return await coordinator.map_store.async_set_document(document)


def async_register_services(hass: HomeAssistant) -> None:
    """Register all Milkbot services."""

    async def handle_assign_task(call: ServiceCall) -> None:
        """Handle milkbot.assign_task: start a task at a map location."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        result = await coordinator.async_send_command(
            AssignTaskCommand(
                location_id=call.data["location_id"], task_type=call.data["task_type"]
            )
        )
        raise_for_result(result, SERVICE_ASSIGN_TASK)

    async def handle_stop_move(call: ServiceCall) -> None:
        """Handle milkbot.stop_move: stop one motor or all of them."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        result = await coordinator.async_send_command(StopMoveCommand(motor=call.data["motor"]))
        raise_for_result(result, SERVICE_STOP_MOVE)

    async def handle_stop_task(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        raise_for_result(await coordinator.async_send_command(StopTaskCommand()), SERVICE_STOP_TASK)

    async def handle_homing(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        raise_for_result(await coordinator.async_send_command(HomingCommand()), SERVICE_HOMING)

    async def handle_gripper(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        result = await coordinator.async_send_command(GripperCommand(open=call.data["open"]))
        raise_for_result(result, SERVICE_GRIPPER)

    async def handle_prepare_for_test(call: ServiceCall) -> None:
        """Handle milkbot.prepare_for_test: put the robot into test mode."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        result = await coordinator.async_send_command(
            PrepareForTestCommand(
                robot_number=call.data["robot_number"],
                negative_platform=call.data["negative_platform"],
            )
        )
        raise_for_result(result, SERVICE_PREPARE_FOR_TEST)

    async def handle_prepare_for_mapping(call: ServiceCall) -> None:
        """Handle milkbot.prepare_for_mapping: put the robot into mapping mode.

        ``device_name`` defaults to the name the robot was selected by.
        """
        coordinator = _get_coordinator(hass, call.data["device_id"])
        device_name = (
            call.data.get("device_name")
            or coordinator.entry.data.get(CONF_NAME_FILTER)
            or coordinator.connection.transport.name
            or ""
        )
        result = await coordinator.async_send_command(
            PrepareForMappingCommand(
                role=call.data["role"],
                is_negative_platform=call.data["is_negative_platform"],
                device_name=device_name,
            )
        )
        raise_for_result(result, SERVICE_PREPARE_FOR_MAPPING)

    async def handle_send_map(call: ServiceCall) -> None:
        """Handle milkbot.send_map: transfer the stored map to the robot."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        try:
            result = await coordinator.async_send_map()
        except InvalidMapDocument as err:
            raise ServiceValidationError(f"Map is not ready to send: {err}") from err
        raise_for_result(result, SERVICE_SEND_MAP)

    async def handle_import_map(call: ServiceCall) -> None:
        """Handle milkbot.import_map: replace the stored map with a JSON document."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        try:
            document = validate_import(call.data["map"])
        except InvalidMapDocument as err:
            raise ServiceValidationError(f"Invalid map document: {err}") from err
        await coordinator.map_store.async_set_document(document)
        _LOGGER.info(
            "Imported map %r with %d locations", document.map_name, len(document.body.locations)
        )

    async def handle_export_map(call: ServiceCall) -> ServiceResponse:
        """Handle milkbot.export_map: return the stored map as JSON."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        document = await coordinator.map_store.async_save()
        return map_document_to_dict(document)

    async def handle_new_map(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        await coordinator.map_store.async_set_document(new_map_document())

    async def handle_add_location(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        await _edit_map(
            coordinator,
            lambda doc: add_location(
                doc,
                location_type=call.data["location_type"],
                location_id=call.data["location_id"],
                x=call.data["x"],
                y=call.data["y"],
                z=call.data["z"],
            ),
        )

    async def handle_remove_location(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        await _edit_map(coordinator, lambda doc: remove_location(doc, call.data["index"] - 1))

    async def handle_move_location(call: ServiceCall) -> None:
        """Handle milkbot.move_location: swap a location with its neighbour."""
        coordinator = _get_coordinator(hass, call.data["device_id"])
        move = move_location_up if call.data["direction"] == "up" else move_location_down
        await _edit_map(coordinator, lambda doc: move(doc, call.data["index"] - 1))

    async def handle_update_location(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        await _edit_map(
            coordinator,
            lambda doc: update_location(
                doc,
                call.data["index"] - 1,
                location_type=call.data.get("location_type"),
                location_id=call.data.get("location_id"),
                x=call.data.get("x"),
                y=call.data.get("y"),
                z=call.data.get("z"),
            ),
        )

    async def handle_update_map_info(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call.data["device_id"])
        fields = {key: value for key, value in call.data.items() if key != "device_id"}
        if not fields:
            raise ServiceValidationError("No map fields given")
        await _edit_map(coordinator, lambda doc: update_map_info(doc, **fields))

    services: dict[
        str,
        tuple[Callable[[ServiceCall], Awaitable[Any]], vol.Schema, SupportsResponse],
    ] = {
        SERVICE_ASSIGN_TASK: (handle_assign_task, SERVICE_ASSIGN_TASK_SCHEMA, SupportsResponse.NONE),
        SERVICE_STOP_MOVE: (handle_stop_move, SERVICE_STOP_MOVE_SCHEMA, SupportsResponse.NONE),
        SERVICE_STOP_TASK: (handle_stop_task, SERVICE_DEVICE_ONLY_SCHEMA, SupportsResponse.NONE),
        SERVICE_HOMING: (handle_homing, SERVICE_DEVICE_ONLY_SCHEMA, SupportsResponse.NONE),
        SERVICE_GRIPPER: (handle_gripper, SERVICE_GRIPPER_SCHEMA, SupportsResponse.NONE),
        SERVICE_PREPARE_FOR_TEST: (
            handle_prepare_for_test,
            SERVICE_PREPARE_FOR_TEST_SCHEMA,
            SupportsResponse.NONE,
        ),
        SERVICE_PREPARE_FOR_MAPPING: (
            handle_prepare_for_mapping,
            SERVICE_PREPARE_FOR_MAPPING_SCHEMA,
            SupportsResponse.NONE,
        ),
        SERVICE_SEND_MAP: (handle_send_map, SERVICE_DEVICE_ONLY_SCHEMA, SupportsResponse.NONE),
        SERVICE_IMPORT_MAP: (handle_import_map, SERVICE_IMPORT_MAP_SCHEMA, SupportsResponse.NONE),
        SERVICE_EXPORT_MAP: (handle_export_map, SERVICE_DEVICE_ONLY_SCHEMA, SupportsResponse.ONLY),
        SERVICE_NEW_MAP: (handle_new_map, SERVICE_DEVICE_ONLY_SCHEMA, SupportsResponse.NONE),
        SERVICE_ADD_LOCATION: (
            handle_add_location,
            SERVICE_ADD_LOCATION_SCHEMA,
            SupportsResponse.NONE,
        ),
        SERVICE_REMOVE_LOCATION: (
            handle_remove_location,
            SERVICE_REMOVE_LOCATION_SCHEMA,
            SupportsResponse.NONE,
        ),
        SERVICE_MOVE_LOCATION: (
            handle_move_location,
            SERVICE_MOVE_LOCATION_SCHEMA,
            SupportsResponse.NONE,
        ),
        SERVICE_UPDATE_LOCATION: (
            handle_update_location,
            SERVICE_UPDATE_LOCATION_SCHEMA,
            SupportsResponse.NONE,
        ),
        SERVICE_UPDATE_MAP_INFO: (
            handle_update_map_info,
            SERVICE_UPDATE_MAP_INFO_SCHEMA,
            SupportsResponse.NONE,
        ),
    }

    for name, (handler, schema, supports_response) in services.items():
        if not hass.services.has_service(DOMAIN, name):
            hass.services.async_register(
                DOMAIN, name, handler, schema=schema, supports_response=supports_response
            )

    _LOGGER.debug("Milkbot services registered")


SERVICE_NAMES = (
    SERVICE_ASSIGN_TASK,
    SERVICE_STOP_MOVE,
    SERVICE_STOP_TASK,
    SERVICE_HOMING,
    SERVICE_GRIPPER,
    SERVICE_PREPARE_FOR_TEST,
    SERVICE_PREPARE_FOR_MAPPING,
    SERVICE_SEND_MAP,
    SERVICE_IMPORT_MAP,
    SERVICE_EXPORT_MAP,
    SERVICE_NEW_MAP,
    SERVICE_ADD_LOCATION,
    SERVICE_REMOVE_LOCATION,
    SERVICE_MOVE_LOCATION,
    SERVICE_UPDATE_LOCATION,
    SERVICE_UPDATE_MAP_INFO,
)


def async_unregister_services(hass: HomeAssistant) -> None:
    """Unregister Milkbot services when the last config entry is removed."""
    for name in SERVICE_NAMES:
        if hass.services.has_service(DOMAIN, name):
            hass.services.async_remove(DOMAIN, name)
