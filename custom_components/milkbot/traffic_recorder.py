"""Bluetooth traffic recorder for Milkbot diagnostics.

Writes every status frame read from the robot and every command written
to it into a size-capped JSONL file under the Home Assistant config
directory, so users can attach a capture to a bug report.

Line format:
    {"ts": ISO8601, "dir": "RX"|"TX"|"META", "channel": "...", "data": ..., ...}

RX lines carry the raw frame as hex, TX lines the UTF-8 command payload
and whether the write succeeded.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

_LOGGER = logging.getLogger(__name__)

RECORDINGS_DIR = "milkbot_recordings"


def _safe_id(robot_id: str) -> str:
    cleaned = "".join(ch for ch in robot_id if ch.isalnum())
    return cleaned[-12:] or "robot"


class TrafficRecorder:
    """Records link traffic to a JSONL file with a single backup on overflow."""

    def __init__(
        self,
        storage_dir: Path,
        robot_id: str,
        max_size_bytes: int = 5 * 1024 * 1024,
    ) -> None:
        self._dir = storage_dir / RECORDINGS_DIR
        self._robot_id = _safe_id(robot_id)
        self._max_size = max_size_bytes
        self._enabled = False
        self._file: TextIO | None = None
        self._current_path: Path | None = None
        self._bytes_written = 0
        self._write_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def recording_path(self) -> Path | None:
        return self._current_path

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    def start(self) -> Path:
        """Open a new recording file. Returns its path."""
        if self._enabled and self._current_path:
            return self._current_path

        self._dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        self._current_path = self._dir / f"milkbot_{self._robot_id}_{ts}.jsonl"
        self._file = open(self._current_path, "a", encoding="utf-8")
        self._bytes_written = self._current_path.stat().st_size
        self._enabled = True
        _LOGGER.info("Traffic recording started: %s", self._current_path)
        self._write({"dir": "META", "channel": "recording_start", "max_size_bytes": self._max_size})
        return self._current_path

    def stop(self) -> None:
        """Close the recording file."""
        if not self._enabled:
            return
        self._write(
            {"dir": "META", "channel": "recording_stop", "bytes_written": self._bytes_written}
        )
        with self._write_lock:
            if self._file:
                self._file.close()
                self._file = None
            self._enabled = False
        _LOGGER.info(
            "Traffic recording stopped: %s (%.1f KB)",
            self._current_path,
            self._bytes_written / 1024,
        )

    def record_frame(self, channel: str, frame: bytes) -> None:
        """Record a status frame read from the robot."""
        if not self._enabled:
            return
        self._write({"dir": "RX", "channel": channel, "data": frame.hex(), "len": len(frame)})

    def record_command(self, channel: str, payload: str, success: bool, error: str | None) -> None:
        """Record a command payload written to the robot."""
        if not self._enabled:
            return
        entry: dict[str, Any] = {"dir": "TX", "channel": channel, "success": success}
        try:
            entry["data"] = json.loads(payload)
        except json.JSONDecodeError:
            entry["data"] = payload
        if error:
            entry["error"] = error
        self._write(entry)

    def list_recordings(self) -> list[Path]:
        if not self._dir.exists():
            return []
        return sorted(self._dir.glob(f"milkbot_{self._robot_id}_*.jsonl"), reverse=True)

    def _write(self, entry: dict[str, Any]) -> None:
        with self._write_lock:
            if not self._file:
                return
            if self._bytes_written >= self._max_size:
                try:
                    self._rotate()
                except OSError as err:
                    _LOGGER.warning("Failed to rotate traffic recording, stopping: %s", err)
                    self._enabled = False
                    if self._file:
                        self._file.close()
                        self._file = None
                    return

            line = json.dumps({"ts": datetime.now(UTC).isoformat(), **entry}, default=str) + "\n"
            try:
                self._file.write(line)
                self._file.flush()
                self._bytes_written += len(line.encode("utf-8"))
            except OSError as err:
                _LOGGER.warning("Failed to write traffic recording: %s", err)

    def _rotate(self) -> None:
        # Keeps one backup next to the live file.
        if self._file:
            self._file.close()
        assert self._current_path is not None
        backup = self._current_path.with_suffix(".1.jsonl")
        backup.unlink(missing_ok=True)
        self._current_path.rename(backup)
        self._file = open(self._current_path, "a", encoding="utf-8")
        self._bytes_written = 0
        _LOGGER.info("Traffic recording rotated: %s", self._current_path)
