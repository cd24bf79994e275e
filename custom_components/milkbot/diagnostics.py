"""Diagnostics support for the Milkbot integration."""

from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_ADDRESS, CONF_NAME_FILTER, DATA_COORDINATOR, DOMAIN
from .telemetry import snapshot_as_dict


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry.

    The Bluetooth address is masked down to its last two octets. The map
    is summarised, not dumped.
    """
    coordinator = hass.data[DOMAIN][entry.entry_id][DATA_COORDINATOR]
    connection = coordinator.connection
    synchronizer = coordinator.synchronizer
    document = coordinator.map_document
    recorder = coordinator.recorder

    return {
        "config_entry": _redact_config(entry.data),
        "options": dict(entry.options),
        "connection": {
            "state": str(connection.state),
            "last_error": str(connection.last_error) if connection.last_error else None,
            "operation_timeout": connection.operation_timeout,
        },
        "synchronizer": {
            "running": synchronizer.running,
            "last_sequence": synchronizer.last_sequence,
            "stale_count": synchronizer.stale_count,
            "skipped_ticks": synchronizer.skipped_ticks,
            "read_failures": synchronizer.read_failures,
        },
        "telemetry": snapshot_as_dict(coordinator.data),
        "map": {
            "map_name": document.map_name,
            "platform_number": document.platform_number,
            "map_time": document.map_time,
            "is_active": document.is_active,
            "is_negative": document.body.is_negative,
            "location_count": len(document.body.locations),
        },
        "traffic_recording": {
            "enabled": recorder.enabled,
            "path": str(recorder.recording_path) if recorder.recording_path else None,
            "files": [str(p) for p in recorder.list_recordings()[:5]],
        },
    }


def _redact_address(address: str) -> str:
    """Keep only the last two octets of a Bluetooth address."""
    if not address:
        return "****"
    parts = address.replace("-", ":").split(":")
    if len(parts) < 2:
        return "****"
    return "**:**:**:**:" + ":".join(parts[-2:])


def _redact_config(config: dict[str, Any]) -> dict[str, Any]:
    """Redact identifying config fields."""
    redacted = dict(config)
    if redacted.get(CONF_ADDRESS):
        redacted[CONF_ADDRESS] = _redact_address(redacted[CONF_ADDRESS])
    if redacted.get(CONF_NAME_FILTER):
        redacted[CONF_NAME_FILTER] = "[REDACTED]"
    return redacted
