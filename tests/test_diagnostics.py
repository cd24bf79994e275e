"""Tests for Milkbot diagnostics."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from custom_components.milkbot.const import DATA_COORDINATOR, DOMAIN
from custom_components.milkbot.diagnostics import (
    _redact_address,
    _redact_config,
    async_get_config_entry_diagnostics,
)
from custom_components.milkbot.exceptions import ErrorKind
from custom_components.milkbot.map_document import add_location, new_map_document
from custom_components.milkbot.models import ConnectionState
from custom_components.milkbot.telemetry import decode_status
from tests.conftest import MOCK_ADDRESS, MOCK_CONFIG_ENTRY_DATA, build_status_frame


class TestRedaction:
    def test_address_keeps_last_two_octets(self) -> None:
        assert _redact_address(MOCK_ADDRESS) == "**:**:**:**:EE:FF"

    def test_dashed_address(self) -> None:
        assert _redact_address("AA-BB-CC-DD-EE-FF") == "**:**:**:**:EE:FF"

    def test_empty_or_malformed(self) -> None:
        assert _redact_address("") == "****"
        assert _redact_address("nonsense") == "****"

    def test_config(self) -> None:
        redacted = _redact_config(MOCK_CONFIG_ENTRY_DATA)
        assert redacted["address"] == "**:**:**:**:EE:FF"
        assert redacted["name_filter"] == "[REDACTED]"
        assert redacted["robot_name"] == "Milkbot-07"

    def test_config_without_address(self) -> None:
        redacted = _redact_config({"address": None, "name_filter": "Milkbot-07"})
        assert redacted["address"] is None


@pytest.fixture
def diag_hass(mock_config_entry: MagicMock) -> MagicMock:
    coordinator = MagicMock()
    coordinator.connection.state = ConnectionState.CONNECTED
    coordinator.connection.last_error = None
    coordinator.connection.operation_timeout = 10.0
    coordinator.synchronizer.running = True
    coordinator.synchronizer.last_sequence = 12
    coordinator.synchronizer.stale_count = 0
    coordinator.synchronizer.skipped_ticks = 1
    coordinator.synchronizer.read_failures = 2
    coordinator.data = decode_status(build_status_frame(sequence=12))
    coordinator.map_document = add_location(new_map_document())
    coordinator.recorder.enabled = False
    coordinator.recorder.recording_path = None
    coordinator.recorder.list_recordings.return_value = []

    hass = MagicMock()
    hass.data = {DOMAIN: {mock_config_entry.entry_id: {DATA_COORDINATOR: coordinator}}}
    return hass


class TestConfigEntryDiagnostics:
    async def test_structure(self, diag_hass: MagicMock, mock_config_entry: MagicMock) -> None:
        result = await async_get_config_entry_diagnostics(diag_hass, mock_config_entry)

        assert set(result) == {
            "config_entry",
            "options",
            "connection",
            "synchronizer",
            "telemetry",
            "map",
            "traffic_recording",
        }
        assert result["connection"] == {
            "state": "connected",
            "last_error": None,
            "operation_timeout": 10.0,
        }
        assert result["synchronizer"]["read_failures"] == 2
        assert result["telemetry"]["sequence"] == 12
        assert result["map"]["location_count"] == 1

    async def test_address_never_leaks(
        self, diag_hass: MagicMock, mock_config_entry: MagicMock
    ) -> None:
        result = await async_get_config_entry_diagnostics(diag_hass, mock_config_entry)
        assert MOCK_ADDRESS not in str(result)

    async def test_disconnected_with_error(
        self, diag_hass: MagicMock, mock_config_entry: MagicMock
    ) -> None:
        coordinator = diag_hass.data[DOMAIN][mock_config_entry.entry_id][DATA_COORDINATOR]
        coordinator.connection.state = ConnectionState.DISCONNECTED
        coordinator.connection.last_error = ErrorKind.STALENESS_LIMIT_EXCEEDED
        coordinator.data = None

        result = await async_get_config_entry_diagnostics(diag_hass, mock_config_entry)

        assert result["connection"]["last_error"] == "staleness_limit_exceeded"
        assert result["telemetry"] == {}

    async def test_recording_paths(
        self, diag_hass: MagicMock, mock_config_entry: MagicMock
    ) -> None:
        coordinator = diag_hass.data[DOMAIN][mock_config_entry.entry_id][DATA_COORDINATOR]
        coordinator.recorder.enabled = True
        coordinator.recorder.recording_path = Path("/config/milkbot_recordings/a.jsonl")
        coordinator.recorder.list_recordings.return_value = [
            Path(f"/config/milkbot_recordings/{n}.jsonl") for n in range(7)
        ]

        result = await async_get_config_entry_diagnostics(diag_hass, mock_config_entry)

        assert result["traffic_recording"]["enabled"] is True
        assert result["traffic_recording"]["path"] == "/config/milkbot_recordings/a.jsonl"
        assert len(result["traffic_recording"]["files"]) == 5
