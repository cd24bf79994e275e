"""Link abstraction used by the Milkbot channel layer.

The channel layer never talks to a Bluetooth stack directly; it goes
through a ``Transport``. ``ble.BleakTransport`` is the production
implementation, tests inject a fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

PROPERTY_READ = "read"
PROPERTY_WRITE = "write"
PROPERTY_WRITE_WITHOUT_RESPONSE = "write-without-response"


@dataclass(frozen=True, slots=True)
class GattChannel:
    """Handle to one characteristic, with its declared properties."""

    service_uuid: str
    uuid: str
    properties: frozenset[str] = frozenset()
    handle: Any = field(default=None, compare=False, repr=False)

    @property
    def can_read(self) -> bool:
        return PROPERTY_READ in self.properties

    @property
    def can_write_with_response(self) -> bool:
        return PROPERTY_WRITE in self.properties

    @property
    def can_write_without_response(self) -> bool:
        return PROPERTY_WRITE_WITHOUT_RESPONSE in self.properties


class Transport(ABC):
    """A connection-oriented link exposing GATT-style channels.

    Implementations raise the exceptions from ``exceptions.py``:
    ``ConnectionUnavailable`` when no device can be selected,
    ``ChannelNotFound`` for missing services/characteristics and
    ``TransportError`` (or ``TransportDisconnected``) for link failures.
    """

    @property
    def name(self) -> str | None:
        """Advertised name of the connected device, if known."""
        return None

    @property
    def address(self) -> str | None:
        """Link-layer address of the connected device, if known."""
        return None

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Return True while the link is up."""

    @abstractmethod
    async def connect(self, name_filter: str | None) -> None:
        """Select a device (optionally by advertised name) and connect."""

    @abstractmethod
    async def get_channel(self, service_uuid: str, uuid: str) -> GattChannel:
        """Resolve a characteristic on the connected device."""

    @abstractmethod
    async def read(self, channel: GattChannel) -> bytes:
        """Read the current value of a channel."""

    @abstractmethod
    async def write(self, channel: GattChannel, data: bytes, response: bool) -> None:
        """Write to a channel, with or without link-layer acknowledgement."""

    @abstractmethod
    def on_disconnect(self, handler: Callable[[], None]) -> Callable[[], None]:
        """Register a handler for unsolicited disconnects; returns an unsubscriber."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Drop the link. Safe to call when not connected."""
