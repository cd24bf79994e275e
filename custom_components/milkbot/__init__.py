"""The Milkbot integration."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import __version__
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.loader import async_get_integration

from .ble import BleakTransport
from .const import (
    CONF_ADDRESS,
    CONF_ROBOT_NAME,
    DATA_COORDINATOR,
    DATA_MAP_STORE,
    DOMAIN,
    PLATFORMS,
)
from .coordinator import MilkbotDataCoordinator
from .error_reporting import async_init_error_reporting
from .map_store import MapStore
from .repairs import async_delete_robot_disconnected_issue
from .services import async_register_services, async_unregister_services

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Milkbot from a config entry."""
    integration = await async_get_integration(hass, DOMAIN)

    # Opt-in error reporting: only active if MILKBOT_SENTRY_DSN is set
    await async_init_error_reporting(
        hass,
        tags={
            "integration": DOMAIN,
            "integration_version": str(integration.version or "unknown"),
            "ha_version": __version__,
        },
    )

    map_store = MapStore(hass, entry.entry_id)
    await map_store.async_load()

    transport = BleakTransport(hass, entry.data.get(CONF_ADDRESS))
    coordinator = MilkbotDataCoordinator(hass, entry, transport, map_store)

    try:
        connected = await coordinator.async_connect()
    except Exception:
        await coordinator.async_shutdown()
        raise
    if not connected:
        reason = coordinator.connection.last_error
        await coordinator.async_shutdown()
        raise ConfigEntryNotReady(
            f"Cannot connect to {entry.data.get(CONF_ROBOT_NAME, 'robot')}: {reason}"
        )

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        DATA_COORDINATOR: coordinator,
        DATA_MAP_STORE: map_store,
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    async_register_services(hass)

    # Options apply live without a full config-entry reload.
    entry.async_on_unload(entry.add_update_listener(_async_update_options))

    return True


async def _async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update: propagate new options to the coordinator."""
    coordinator: MilkbotDataCoordinator = hass.data[DOMAIN][entry.entry_id][DATA_COORDINATOR]
    options: dict[str, Any] = dict(entry.options)
    coordinator.update_options(options)
    _LOGGER.debug("Milkbot options applied for entry %s", entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        data = hass.data[DOMAIN].pop(entry.entry_id)
        coordinator: MilkbotDataCoordinator = data[DATA_COORDINATOR]
        await coordinator.async_shutdown()
        # Clean up the repair issue so it is not orphaned
        async_delete_robot_disconnected_issue(hass, entry.entry_id)
        if not hass.data[DOMAIN]:
            hass.data.pop(DOMAIN)
            async_unregister_services(hass)

    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Delete the stored map when the config entry is removed."""
    await MapStore(hass, entry.entry_id).async_remove()
