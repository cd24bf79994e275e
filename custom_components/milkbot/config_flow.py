"""Config flow for the Milkbot integration."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.components.bluetooth import (
    BluetoothServiceInfoBleak,
    async_discovered_service_info,
)
from homeassistant.config_entries import ConfigEntry, ConfigFlow, OptionsFlow
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult

from .const import (
    CONF_ADDRESS,
    CONF_NAME_FILTER,
    CONF_ROBOT_NAME,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_TRAFFIC_RECORDING,
    DOMAIN,
    MAX_OPERATION_TIMEOUT,
    MIN_OPERATION_TIMEOUT,
    OPT_DEBUG_LOGGING,
    OPT_OPERATION_TIMEOUT,
    OPT_TRAFFIC_RECORDING,
    STATUS_SERVICE_UUID,
)

_LOGGER = logging.getLogger(__name__)


def _is_robot(service_info: BluetoothServiceInfoBleak) -> bool:
    return STATUS_SERVICE_UUID in (service_info.service_uuids or [])


class MilkbotConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Milkbot.

    Supports:
    - Bluetooth discovery of robots advertising the status service
      (async_step_bluetooth)
    - Picking a discovered robot or entering its advertised name
      (async_step_user)
    """

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self._discovery_info: BluetoothServiceInfoBleak | None = None
        self._discovered: dict[str, BluetoothServiceInfoBleak] = {}

    async def async_step_bluetooth(
        self, discovery_info: BluetoothServiceInfoBleak
    ) -> FlowResult:
        """Handle a robot found by the Bluetooth scanner."""
        _LOGGER.debug(
            "Bluetooth discovery: name=%s address=%s", discovery_info.name, discovery_info.address
        )
        await self.async_set_unique_id(discovery_info.address)
        self._abort_if_unique_id_configured()
        self._discovery_info = discovery_info
        self.context["title_placeholders"] = {
            "name": discovery_info.name or discovery_info.address
        }
        return await self.async_step_bluetooth_confirm()

    async def async_step_bluetooth_confirm(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Confirm a discovered robot."""
        assert self._discovery_info is not None
        name = self._discovery_info.name or self._discovery_info.address
        if user_input is not None:
            return self._create_entry(self._discovery_info.address, name, name)

        self._set_confirm_only()
        return self.async_show_form(
            step_id="bluetooth_confirm",
            description_placeholders={"name": name},
        )

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Pick a discovered robot or enter the robot's advertised name."""
        errors: dict[str, str] = {}

        if user_input is not None:
            address = user_input.get(CONF_ADDRESS)
            name_filter = (user_input.get(CONF_NAME_FILTER) or "").strip()
            if address:
                service_info = self._discovered[address]
                name = service_info.name or address
                await self.async_set_unique_id(address, raise_on_progress=False)
                self._abort_if_unique_id_configured()
                return self._create_entry(address, name, name_filter or name)
            if name_filter:
                # Matched by name at connect time; the address is learned later.
                await self.async_set_unique_id(name_filter, raise_on_progress=False)
                self._abort_if_unique_id_configured()
                return self._create_entry(None, name_filter, name_filter)
            errors["base"] = "no_device_selected"

        current_addresses = self._async_current_ids()
        self._discovered = {
            info.address: info
            for info in async_discovered_service_info(self.hass, connectable=True)
            if _is_robot(info) and info.address not in current_addresses
        }

        fields: dict[Any, Any] = {}
        if self._discovered:
            fields[vol.Optional(CONF_ADDRESS)] = vol.In(
                {
                    address: f"{info.name or 'Milkbot'} ({address})"
                    for address, info in self._discovered.items()
                }
            )
        fields[vol.Optional(CONF_NAME_FILTER)] = str

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(fields),
            errors=errors,
        )

    def _create_entry(self, address: str | None, name: str, name_filter: str | None) -> FlowResult:
        return self.async_create_entry(
            title=name,
            data={
                CONF_ADDRESS: address,
                CONF_NAME_FILTER: name_filter,
                CONF_ROBOT_NAME: name,
            },
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> OptionsFlow:
        """Return the options flow handler."""
        return MilkbotOptionsFlow(config_entry)


class MilkbotOptionsFlow(OptionsFlow):
    """Handle options for the Milkbot integration.

    Options: operation_timeout (float seconds, 10.0 default), debug_logging
    (bool), traffic_recording (bool). Applied without restart.
    """

    def __init__(self, config_entry: ConfigEntry) -> None:
        """Initialize options flow."""
        self._config_entry = config_entry

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Manage options."""
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        options = self._config_entry.options
        schema = vol.Schema(
            {
                vol.Optional(
                    OPT_OPERATION_TIMEOUT,
                    default=options.get(OPT_OPERATION_TIMEOUT, DEFAULT_OPERATION_TIMEOUT),
                ): vol.All(
                    vol.Coerce(float),
                    vol.Range(min=MIN_OPERATION_TIMEOUT, max=MAX_OPERATION_TIMEOUT),
                ),
                vol.Optional(
                    OPT_DEBUG_LOGGING,
                    default=options.get(OPT_DEBUG_LOGGING, DEFAULT_DEBUG_LOGGING),
                ): bool,
                vol.Optional(
                    OPT_TRAFFIC_RECORDING,
                    default=options.get(OPT_TRAFFIC_RECORDING, DEFAULT_TRAFFIC_RECORDING),
                ): bool,
            }
        )

        return self.async_show_form(step_id="init", data_schema=schema)
