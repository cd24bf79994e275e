"""Test fixtures for home-assistant-milkbot."""

from __future__ import annotations

import asyncio
import os
import struct
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

# Keep Sentry off during tests. The SDK starts a BackgroundWorker thread on
# the first captured event, which trips the strict thread-leak checker of
# pytest-homeassistant-custom-component.
os.environ.setdefault("MILKBOT_SENTRY_DSN", "")

import pytest

from custom_components.milkbot.const import (
    CONF_ADDRESS,
    CONF_NAME_FILTER,
    CONF_ROBOT_NAME,
    DOMAIN,
    STATUS_CHARACTERISTIC_UUID,
)
from custom_components.milkbot.exceptions import (
    ChannelNotFound,
    ConnectionUnavailable,
)
from custom_components.milkbot.transport import (
    PROPERTY_READ,
    PROPERTY_WRITE,
    GattChannel,
    Transport,
)

# ---------------------------------------------------------------------------
# Mock robot and config data
# ---------------------------------------------------------------------------

MOCK_ADDRESS = "AA:BB:CC:DD:EE:FF"
MOCK_ROBOT_NAME = "Milkbot-07"

MOCK_CONFIG_ENTRY_DATA: dict[str, Any] = {
    CONF_ADDRESS: MOCK_ADDRESS,
    CONF_NAME_FILTER: MOCK_ROBOT_NAME,
    CONF_ROBOT_NAME: MOCK_ROBOT_NAME,
}

STATUS_FRAME_FORMAT = struct.Struct("<HBB3B4b4B2B3i3f3fB")


def build_status_frame(
    sequence: int = 1,
    *,
    action_requests: int = 0,
    tool_type: int = 1,
    motor_power: tuple[int, int, int] = (1, 0, 1),
    homing: tuple[int, int, int, int] = (100, 100, -2, 0),
    phasing: tuple[int, int, int, int] = (2, 1, 0, 2),
    grippers: tuple[int, int] = (0, 1),
    ticks: tuple[int, int, int] = (1000, -2000, 3),
    position: tuple[float, float, float] = (0.5, 1.25, -0.75),
    platform_position: tuple[float, float, float] = (1.0, 2.0, 3.0),
    has_map: int = 1,
) -> bytes:
    """Pack a full 54-byte status frame."""
    return STATUS_FRAME_FORMAT.pack(
        sequence,
        action_requests,
        tool_type,
        *motor_power,
        *homing,
        *phasing,
        *grippers,
        *ticks,
        *position,
        *platform_position,
        has_map,
    )


class FakeTransport(Transport):
    """In-memory Transport with scripted frames and failure injection.

    ``frames`` is consumed one per read; the last frame repeats once the
    list is down to one entry. Every write is captured in ``writes``.
    ``events`` logs the start and end of every read and write.
    """

    def __init__(
        self,
        frames: list[bytes] | None = None,
        *,
        name: str | None = MOCK_ROBOT_NAME,
        address: str | None = MOCK_ADDRESS,
    ) -> None:
        self.frames: list[bytes] = list(frames if frames is not None else [build_status_frame()])
        self.writes: list[tuple[str, bytes, bool]] = []
        self.channel_properties: dict[str, frozenset[str]] = {
            STATUS_CHARACTERISTIC_UUID: frozenset({PROPERTY_READ}),
        }
        self.missing_channels: set[str] = set()
        self.connect_error: Exception | None = None
        self.read_error: Exception | None = None
        self.write_error: Exception | None = None
        self.drop_on_connect = False
        self.connect_delay = 0.0
        self.read_delay = 0.0
        self.write_delay = 0.0
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.read_calls = 0
        self.events: list[str] = []
        self.name_filters: list[str | None] = []
        self._name = name
        self._address = address
        self._connected = False
        self._handlers: list[Callable[[], None]] = []

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self, name_filter: str | None) -> None:
        self.connect_calls += 1
        self.name_filters.append(name_filter)
        if self.connect_error is not None:
            raise self.connect_error
        if name_filter is not None and name_filter != self._name:
            raise ConnectionUnavailable(f"No device named {name_filter}")
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        self._connected = not self.drop_on_connect

    async def get_channel(self, service_uuid: str, uuid: str) -> GattChannel:
        if uuid in self.missing_channels:
            raise ChannelNotFound(f"Characteristic {uuid} not found")
        return GattChannel(
            service_uuid=service_uuid,
            uuid=uuid,
            properties=self.channel_properties.get(uuid, frozenset({PROPERTY_WRITE})),
        )

    async def read(self, channel: GattChannel) -> bytes:
        self.read_calls += 1
        self.events.append("read_start")
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        self.events.append("read_end")
        if self.read_error is not None:
            raise self.read_error
        if len(self.frames) > 1:
            return self.frames.pop(0)
        return self.frames[0] if self.frames else b""

    async def write(self, channel: GattChannel, data: bytes, response: bool) -> None:
        self.events.append("write_start")
        if self.write_delay:
            await asyncio.sleep(self.write_delay)
        self.events.append("write_end")
        if self.write_error is not None:
            raise self.write_error
        self.writes.append((channel.uuid, data, response))

    def on_disconnect(self, handler: Callable[[], None]) -> Callable[[], None]:
        self._handlers.append(handler)

        def _remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _remove

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def drop(self) -> None:
        """Simulate the robot going out of range."""
        self._connected = False
        for handler in list(self._handlers):
            handler()


@pytest.fixture
def fake_transport() -> FakeTransport:
    """Return a FakeTransport serving one repeating status frame."""
    return FakeTransport()


@pytest.fixture
def mock_config_entry() -> MagicMock:
    """Return a mock config entry with standard test data."""
    entry = MagicMock()
    entry.entry_id = "test_entry_id"
    entry.domain = DOMAIN
    entry.data = dict(MOCK_CONFIG_ENTRY_DATA)
    entry.options = {}
    entry.unique_id = MOCK_ADDRESS
    entry.title = MOCK_ROBOT_NAME
    return entry


@pytest.fixture
def mock_coordinator(mock_config_entry: MagicMock) -> MagicMock:
    """Minimal mock coordinator for entity tests."""
    coord = MagicMock()
    coord.entry = mock_config_entry
    coord._entry = mock_config_entry
    coord.last_update_success = True
    coord.connection.is_connected = True
    coord.data = None
    coord.async_send_command = AsyncMock()
    coord.async_send_map = AsyncMock()
    coord.async_reconnect = AsyncMock(return_value=True)
    return coord
