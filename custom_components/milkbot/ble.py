"""Bluetooth LE transport backed by bleak and Home Assistant's scanner."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from bleak import BleakClient
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection
from homeassistant.components import bluetooth
from homeassistant.core import HomeAssistant

from .const import STATUS_SERVICE_UUID
from .exceptions import (
    ChannelNotFound,
    ConnectionUnavailable,
    TransportDisconnected,
    TransportError,
)
from .transport import GattChannel, Transport

_LOGGER = logging.getLogger(__name__)


def _matches(service_info: Any, address: str | None, name_filter: str | None) -> bool:
    if address:
        return service_info.address.upper() == address.upper()
    if name_filter:
        return (service_info.name or "") == name_filter
    return STATUS_SERVICE_UUID in (service_info.service_uuids or [])


class BleakTransport(Transport):
    """Transport over a bleak client.

    Devices are looked up in Home Assistant's Bluetooth discovery cache,
    so any local adapter or Bluetooth proxy can carry the link.
    """

    def __init__(self, hass: HomeAssistant, address: str | None = None) -> None:
        self._hass = hass
        self._address = address
        self._name: str | None = None
        self._client: BleakClient | None = None
        self._disconnect_handlers: list[Callable[[], None]] = []

    @property
    def name(self) -> str | None:
        return self._name

    @property
    def address(self) -> str | None:
        return self._address

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def _select_device(self, name_filter: str | None) -> Any:
        for service_info in bluetooth.async_discovered_service_info(self._hass, connectable=True):
            if _matches(service_info, self._address, name_filter):
                return service_info
        wanted = self._address or name_filter or "any robot"
        raise ConnectionUnavailable(f"No connectable Bluetooth device found for {wanted}")

    async def connect(self, name_filter: str | None) -> None:
        service_info = self._select_device(name_filter)
        self._address = service_info.address
        self._name = service_info.name or service_info.address
        _LOGGER.debug("Connecting to %s (%s)", self._name, self._address)
        try:
            self._client = await establish_connection(
                BleakClientWithServiceCache,
                service_info.device,
                self._name,
                disconnected_callback=self._on_bleak_disconnect,
            )
        except (BleakError, TimeoutError) as err:
            raise TransportError(f"Failed to connect to {self._name}: {err}") from err

    async def get_channel(self, service_uuid: str, uuid: str) -> GattChannel:
        client = self._require_client()
        service = client.services.get_service(service_uuid)
        if service is None:
            raise ChannelNotFound(f"Service {service_uuid} not found")
        characteristic = service.get_characteristic(uuid)
        if characteristic is None:
            raise ChannelNotFound(f"Characteristic {uuid} not found in service {service_uuid}")
        return GattChannel(
            service_uuid=service_uuid,
            uuid=uuid,
            properties=frozenset(characteristic.properties),
            handle=characteristic,
        )

    async def read(self, channel: GattChannel) -> bytes:
        client = self._require_client()
        try:
            return bytes(await client.read_gatt_char(channel.handle or channel.uuid))
        except BleakError as err:
            raise TransportError(f"Read of {channel.uuid} failed: {err}") from err

    async def write(self, channel: GattChannel, data: bytes, response: bool) -> None:
        client = self._require_client()
        try:
            await client.write_gatt_char(channel.handle or channel.uuid, data, response=response)
        except BleakError as err:
            raise TransportError(f"Write to {channel.uuid} failed: {err}") from err

    def on_disconnect(self, handler: Callable[[], None]) -> Callable[[], None]:
        self._disconnect_handlers.append(handler)

        def _remove() -> None:
            if handler in self._disconnect_handlers:
                self._disconnect_handlers.remove(handler)

        return _remove

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.disconnect()
        except BleakError as err:
            raise TransportError(f"Disconnect failed: {err}") from err

    def _require_client(self) -> BleakClient:
        if self._client is None or not self._client.is_connected:
            raise TransportDisconnected("Bluetooth link is not connected")
        return self._client

    def _on_bleak_disconnect(self, client: BleakClient) -> None:
        if client is not self._client:
            return
        _LOGGER.debug("Bluetooth link to %s dropped", self._name)
        for handler in list(self._disconnect_handlers):
            handler()
