"""Tests for the Bluetooth traffic recorder and error report scrubbing."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

from custom_components.milkbot.ble import _matches
from custom_components.milkbot.const import STATUS_SERVICE_UUID
from custom_components.milkbot.error_reporting import _scrub_event, init_error_reporting
from custom_components.milkbot.traffic_recorder import RECORDINGS_DIR, TrafficRecorder
from tests.conftest import MOCK_ADDRESS


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestTrafficRecorder:
    def test_disabled_by_default(self, tmp_path: Path) -> None:
        recorder = TrafficRecorder(tmp_path, MOCK_ADDRESS)
        recorder.record_frame("status", b"\x01\x02")
        assert recorder.enabled is False
        assert recorder.list_recordings() == []

    def test_records_frames_and_commands(self, tmp_path: Path) -> None:
        recorder = TrafficRecorder(tmp_path, MOCK_ADDRESS)
        path = recorder.start()

        recorder.record_frame("status", b"\x01\x00\xff")
        recorder.record_command("cmd", '{"Homing":true}', True, None)
        recorder.record_command("cmd", "not json", False, "write_unsupported")
        recorder.stop()

        assert path.parent == tmp_path / RECORDINGS_DIR
        assert path.name.startswith("milkbot_AABBCCDDEEFF_")
        lines = _lines(path)
        assert [line["dir"] for line in lines] == ["META", "RX", "TX", "TX", "META"]
        assert lines[1]["data"] == "0100ff"
        assert lines[1]["len"] == 3
        assert lines[2]["data"] == {"Homing": True}
        assert lines[3]["data"] == "not json"
        assert lines[3]["error"] == "write_unsupported"

    def test_start_is_idempotent(self, tmp_path: Path) -> None:
        recorder = TrafficRecorder(tmp_path, MOCK_ADDRESS)
        assert recorder.start() == recorder.start()
        recorder.stop()

    def test_rotates_when_full(self, tmp_path: Path) -> None:
        recorder = TrafficRecorder(tmp_path, MOCK_ADDRESS, max_size_bytes=200)
        path = recorder.start()
        for _ in range(10):
            recorder.record_frame("status", bytes(54))
        recorder.stop()

        assert path.with_suffix(".1.jsonl").exists()
        assert path.stat().st_size < 400


class TestDeviceMatching:
    def _info(self, address: str, name: str | None, uuids: list[str]) -> MagicMock:
        info = MagicMock()
        info.address = address
        info.name = name
        info.service_uuids = uuids
        return info

    def test_address_wins(self) -> None:
        info = self._info(MOCK_ADDRESS.lower(), "Other", [])
        assert _matches(info, MOCK_ADDRESS, "Milkbot-07") is True

    def test_exact_name(self) -> None:
        assert _matches(self._info("x", "Milkbot-07", []), None, "Milkbot-07") is True
        assert _matches(self._info("x", "Milkbot-070", []), None, "Milkbot-07") is False

    def test_any_robot_by_service(self) -> None:
        assert _matches(self._info("x", None, [STATUS_SERVICE_UUID]), None, None) is True
        assert _matches(self._info("x", None, []), None, None) is False


class TestErrorReporting:
    def test_disabled_without_dsn(self, monkeypatch) -> None:
        monkeypatch.delenv("MILKBOT_SENTRY_DSN", raising=False)
        assert init_error_reporting() is False

    def test_foreign_event_dropped(self) -> None:
        event = {
            "exception": {
                "values": [
                    {"stacktrace": {"frames": [{"module": "homeassistant.core"}]}}
                ]
            }
        }
        assert _scrub_event(event, {}) is None

    def test_addresses_scrubbed(self) -> None:
        event = {
            "exception": {
                "values": [
                    {
                        "value": f"Cannot reach {MOCK_ADDRESS}",
                        "stacktrace": {
                            "frames": [{"module": "custom_components.milkbot.connection"}]
                        },
                    }
                ]
            },
            "extra": {"address": MOCK_ADDRESS, "note": f"seen {MOCK_ADDRESS}"},
        }

        scrubbed = _scrub_event(event, {})

        assert scrubbed is not None
        assert scrubbed["exception"]["values"][0]["value"] == "Cannot reach [ADDRESS]"
        assert scrubbed["extra"] == {"address": "[REDACTED]", "note": "seen [ADDRESS]"}
