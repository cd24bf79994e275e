"""Robot commands and the dispatcher that writes them."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .connection import RobotConnection
from .const import (
    CMD_ASSIGN_TASK_UUID,
    CMD_GRIPPER_UUID,
    CMD_HOMING_UUID,
    CMD_PREPARE_FOR_MAPPING_UUID,
    CMD_PREPARE_FOR_ROBOT_TEST_UUID,
    CMD_SERVICE_UUID,
    CMD_STOP_MOVE_UUID,
    CMD_STOP_TASK_UUID,
    SET_PLATFORM_MAP1_UUID,
    SET_PLATFORM_MAP2_UUID,
    SET_SERVICE_UUID,
)
from .exceptions import (
    CommandResult,
    ConnectionUnavailable,
    ErrorKind,
    MilkbotError,
    WriteUnsupported,
)
from .models import MotorType, utc_timestamp

_LOGGER = logging.getLogger(__name__)


def encode_payload(payload: dict[str, Any]) -> str:
    """Serialize a command payload as compact JSON."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class Command:
    """Base class: one subclass per writable channel."""

    service_uuid: ClassVar[str] = CMD_SERVICE_UUID
    channel_uuid: ClassVar[str]

    def payload(self) -> dict[str, Any]:
        return {}

    def encode(self) -> str:
        return encode_payload(self.payload())


@dataclass(frozen=True, slots=True)
class AssignTaskCommand(Command):
    channel_uuid: ClassVar[str] = CMD_ASSIGN_TASK_UUID

    location_id: int
    task_type: int

    def payload(self) -> dict[str, Any]:
        return {"LocationId": int(self.location_id), "TaskType": int(self.task_type)}


@dataclass(frozen=True, slots=True)
class StopMoveCommand(Command):
    channel_uuid: ClassVar[str] = CMD_STOP_MOVE_UUID

    motor: int = MotorType.ALL

    def payload(self) -> dict[str, Any]:
        return {"motor": int(self.motor)}


@dataclass(frozen=True, slots=True)
class StopTaskCommand(Command):
    channel_uuid: ClassVar[str] = CMD_STOP_TASK_UUID


@dataclass(frozen=True, slots=True)
class HomingCommand(Command):
    channel_uuid: ClassVar[str] = CMD_HOMING_UUID


@dataclass(frozen=True, slots=True)
class GripperCommand(Command):
    channel_uuid: ClassVar[str] = CMD_GRIPPER_UUID

    open: bool

    def payload(self) -> dict[str, Any]:
        return {"open": bool(self.open)}


@dataclass(frozen=True, slots=True)
class PrepareForTestCommand(Command):
    channel_uuid: ClassVar[str] = CMD_PREPARE_FOR_ROBOT_TEST_UUID

    robot_number: int
    negative_platform: bool = False

    def payload(self) -> dict[str, Any]:
        return {
            "robotNumber": int(self.robot_number),
            "negativePlatform": bool(self.negative_platform),
        }


@dataclass(frozen=True, slots=True)
class PrepareForMappingCommand(Command):
    channel_uuid: ClassVar[str] = CMD_PREPARE_FOR_MAPPING_UUID

    role: int
    is_negative_platform: bool = False
    device_name: str = ""
    timestamp: str = field(default_factory=utc_timestamp)

    def payload(self) -> dict[str, Any]:
        return {
            "role": int(self.role),
            "isNegativePlatform": bool(self.is_negative_platform),
            "deviceName": self.device_name,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class MapMetadataCommand(Command):
    service_uuid: ClassVar[str] = SET_SERVICE_UUID
    channel_uuid: ClassVar[str] = SET_PLATFORM_MAP1_UUID

    is_negative: bool
    map_name: str
    farm_id: int
    site_name: str
    platform_number: int

    def payload(self) -> dict[str, Any]:
        return {
            "IsNegative": bool(self.is_negative),
            "MapName": self.map_name,
            "FarmId": int(self.farm_id),
            "SiteName": self.site_name,
            "PlatformNumber": int(self.platform_number),
        }


@dataclass(frozen=True, slots=True)
class MapLocationsCommand(Command):
    service_uuid: ClassVar[str] = SET_SERVICE_UUID
    channel_uuid: ClassVar[str] = SET_PLATFORM_MAP2_UUID

    encoded_locations: str

    def payload(self) -> dict[str, Any]:
        return {"P": self.encoded_locations}


class CommandDispatcher:
    """Writes payloads to robot channels.

    Every write is independent: no retries, no request ids. Failures are
    logged here and returned as a ``CommandResult``; nothing raises past
    this class.
    """

    def __init__(
        self,
        connection: RobotConnection,
        *,
        on_write: Callable[[str, str, CommandResult], None] | None = None,
    ) -> None:
        self._connection = connection
        self._on_write = on_write

    async def write(self, service_uuid: str, channel_uuid: str, payload: str) -> CommandResult:
        """Write a UTF-8 payload to a channel, picking the write mode it supports."""
        try:
            if not self._connection.is_connected:
                raise ConnectionUnavailable("Robot is not connected")
            channel = await self._connection.get_channel(service_uuid, channel_uuid)
            if channel.can_write_with_response:
                response = True
            elif channel.can_write_without_response:
                response = False
            else:
                raise WriteUnsupported(f"Channel {channel_uuid} is not writable")
            await self._connection.write(channel, payload.encode("utf-8"), response=response)
        except MilkbotError as err:
            if err.kind is ErrorKind.CONNECTION_UNAVAILABLE:
                _LOGGER.warning("Cannot write to %s: robot is not connected", channel_uuid)
            else:
                _LOGGER.error("Write to %s failed (%s): %s", channel_uuid, err.kind, err)
            result = CommandResult.from_exception(err)
        else:
            _LOGGER.debug(
                "Wrote %d bytes to %s (%s)",
                len(payload),
                channel_uuid,
                "with response" if response else "without response",
            )
            result = CommandResult.ok()

        if self._on_write is not None:
            try:
                self._on_write(channel_uuid, payload, result)
            except Exception:
                _LOGGER.exception("Error in command write hook")
        return result

    async def send(self, command: Command) -> CommandResult:
        """Serialize ``command`` and write it to its channel."""
        _LOGGER.debug("Sending %s", type(command).__name__)
        return await self.write(command.service_uuid, command.channel_uuid, command.encode())

    async def assign_task(self, location_id: int, task_type: int) -> CommandResult:
        return await self.send(AssignTaskCommand(location_id=location_id, task_type=task_type))

    async def stop_move(self, motor: int = MotorType.ALL) -> CommandResult:
        return await self.send(StopMoveCommand(motor=motor))

    async def stop_task(self) -> CommandResult:
        return await self.send(StopTaskCommand())

    async def homing(self) -> CommandResult:
        return await self.send(HomingCommand())

    async def gripper(self, open_gripper: bool) -> CommandResult:
        return await self.send(GripperCommand(open=open_gripper))

    async def prepare_for_test(self, robot_number: int, negative_platform: bool) -> CommandResult:
        return await self.send(
            PrepareForTestCommand(robot_number=robot_number, negative_platform=negative_platform)
        )

    async def prepare_for_mapping(
        self, role: int, is_negative_platform: bool, device_name: str
    ) -> CommandResult:
        return await self.send(
            PrepareForMappingCommand(
                role=role,
                is_negative_platform=is_negative_platform,
                device_name=device_name,
            )
        )
