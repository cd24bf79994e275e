"""Push-based DataUpdateCoordinator for Milkbot telemetry."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .commands import Command, CommandDispatcher
from .connection import RobotConnection
from .const import (
    CONF_ADDRESS,
    CONF_NAME_FILTER,
    CONF_ROBOT_NAME,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_TRAFFIC_RECORDING,
    DOMAIN,
    OPT_DEBUG_LOGGING,
    OPT_OPERATION_TIMEOUT,
    OPT_TRAFFIC_RECORDING,
    STATUS_CHARACTERISTIC_UUID,
    TRAFFIC_RECORDING_MAX_SIZE_BYTES,
)
from .exceptions import CommandResult, ErrorKind
from .map_document import validate_for_send
from .map_store import MapStore
from .map_transfer import MapTransferProtocol
from .models import ConnectionState, MapDocument, TelemetrySnapshot
from .repairs import (
    async_create_robot_disconnected_issue,
    async_delete_robot_disconnected_issue,
)
from .synchronizer import StatusSynchronizer
from .traffic_recorder import TrafficRecorder
from .transport import Transport

_LOGGER = logging.getLogger(__name__)

# Disconnect reasons that raise a repair issue. A user-initiated close or a
# failed first connect does not.
_REPAIR_REASONS = (ErrorKind.STALENESS_LIMIT_EXCEEDED, ErrorKind.TRANSPORT_DISCONNECTED)


def raise_for_result(result: CommandResult, action: str) -> None:
    """Raise HomeAssistantError for a failed command result."""
    if result:
        return
    raise HomeAssistantError(
        f"Milkbot {action} failed ({result.error}): {result.message or 'no details'}"
    )


class MilkbotDataCoordinator(DataUpdateCoordinator[TelemetrySnapshot | None]):
    """Push-based coordinator for one robot.

    Owns the channel layer: connection, status synchronizer, command
    dispatcher and map transfer. The synchronizer publishes each new
    status snapshot, which is pushed to entities with
    ``async_set_updated_data``. There is no update interval.

    Repair issues managed here:
    - robot_disconnected: raised when the link drops or goes stale,
      cleared when the robot connects again.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        transport: Transport,
        map_store: MapStore,
    ) -> None:
        """Initialize the coordinator and wire up the channel layer."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=DOMAIN,
        )
        self._entry = entry
        self.map_store = map_store
        self._issue_active = False
        self._last_state = ConnectionState.DISCONNECTED

        self.connection = RobotConnection(
            transport,
            operation_timeout=float(
                entry.options.get(OPT_OPERATION_TIMEOUT, DEFAULT_OPERATION_TIMEOUT)
            ),
        )
        self.synchronizer = StatusSynchronizer(self.connection, on_frame=self._on_status_frame)
        self.dispatcher = CommandDispatcher(self.connection, on_write=self._on_command_write)
        self.map_transfer = MapTransferProtocol(self.dispatcher)

        self._unsubs = [
            self.synchronizer.broadcast.add_listener(self._on_snapshot),
            self.connection.add_state_listener(self._on_connection_state),
            self.map_store.add_listener(self._on_map_changed),
        ]

        # Debug logging toggle
        self._debug_logging: bool = entry.options.get(OPT_DEBUG_LOGGING, DEFAULT_DEBUG_LOGGING)
        self._original_log_levels: dict[str, int] = {}
        if self._debug_logging:
            self._apply_debug_logging(True)

        # Traffic recorder for diagnostics
        self._recorder = TrafficRecorder(
            storage_dir=Path(hass.config.config_dir),
            robot_id=entry.data.get(CONF_ADDRESS) or entry.entry_id,
            max_size_bytes=TRAFFIC_RECORDING_MAX_SIZE_BYTES,
        )
        self._recorder_enabled_option = entry.options.get(
            OPT_TRAFFIC_RECORDING, DEFAULT_TRAFFIC_RECORDING
        )

    @property
    def entry(self) -> ConfigEntry:
        """Return the config entry (public accessor)."""
        return self._entry

    @property
    def robot_name(self) -> str:
        return self._entry.data.get(CONF_ROBOT_NAME) or "Milkbot"

    @property
    def recorder(self) -> TrafficRecorder:
        """Return the traffic recorder instance."""
        return self._recorder

    @property
    def map_document(self) -> MapDocument:
        return self.map_store.document

    def update_options(self, options: dict[str, Any]) -> None:
        """Apply updated config entry options without requiring a full reload."""
        self.connection.operation_timeout = float(
            options.get(OPT_OPERATION_TIMEOUT, DEFAULT_OPERATION_TIMEOUT)
        )

        new_debug = options.get(OPT_DEBUG_LOGGING, DEFAULT_DEBUG_LOGGING)
        if new_debug != self._debug_logging:
            self._debug_logging = new_debug
            self._apply_debug_logging(new_debug)

        new_recording = options.get(OPT_TRAFFIC_RECORDING, DEFAULT_TRAFFIC_RECORDING)
        if new_recording != self._recorder_enabled_option:
            self._recorder_enabled_option = new_recording
            if new_recording and not self._recorder.enabled:
                self.hass.async_create_task(self._async_start_recorder())
            elif not new_recording and self._recorder.enabled:
                self.hass.async_create_task(self._async_stop_recorder())

        _LOGGER.debug(
            "Milkbot options updated: timeout=%.1fs, debug=%s, recording=%s",
            self.connection.operation_timeout,
            self._debug_logging,
            self._recorder_enabled_option,
        )

    async def async_connect(self) -> bool:
        """Open the connection and start status polling."""
        # Clear any issue left over from before a restart
        async_delete_robot_disconnected_issue(self.hass, self._entry.entry_id)
        self._issue_active = False

        if self._recorder_enabled_option and not self._recorder.enabled:
            try:
                await self._async_start_recorder()
            except OSError as err:
                _LOGGER.warning("Failed to start traffic recorder (non-fatal): %s", err)

        if not await self.connection.open(self._entry.data.get(CONF_NAME_FILTER)):
            return False
        self.synchronizer.start()
        return True

    async def async_reconnect(self) -> bool:
        """Close the link (if open) and connect again."""
        _LOGGER.info("Reconnecting to %s", self.robot_name)
        await self.connection.close()
        if not await self.connection.open(self._entry.data.get(CONF_NAME_FILTER)):
            return False
        self.synchronizer.start()
        return True

    async def async_refresh_status(self) -> None:
        """Read the status channel once, outside the poll schedule."""
        await self.synchronizer.poll_once()

    async def async_send_command(self, command: Command) -> CommandResult:
        """Send one command to the robot."""
        return await self.dispatcher.send(command)

    async def async_send_map(self) -> CommandResult:
        """Validate, timestamp and send the current map to the robot.

        Raises InvalidMapDocument when the map is not ready to send.
        """
        validate_for_send(self.map_store.document)
        document = await self.map_store.async_save()
        return await self.map_transfer.send_map(document)

    @callback
    def _on_snapshot(self, snapshot: TelemetrySnapshot | None) -> None:
        self.async_set_updated_data(snapshot)

    @callback
    def _on_map_changed(self, _document: MapDocument) -> None:
        self.async_update_listeners()

    @callback
    def _on_connection_state(self, state: ConnectionState) -> None:
        previous, self._last_state = self._last_state, state
        if state is ConnectionState.CONNECTED:
            if self._issue_active:
                async_delete_robot_disconnected_issue(self.hass, self._entry.entry_id)
                self._issue_active = False
        elif state is ConnectionState.DISCONNECTED and previous is ConnectionState.CONNECTED:
            reason = self.connection.last_error
            if reason in _REPAIR_REASONS and not self._issue_active:
                _LOGGER.warning("Lost connection to %s (%s)", self.robot_name, reason)
                async_create_robot_disconnected_issue(
                    self.hass, self._entry.entry_id, self.robot_name, str(reason)
                )
                self._issue_active = True
        self.async_update_listeners()

    @callback
    def _on_status_frame(self, frame: bytes) -> None:
        if self._recorder.enabled:
            self.hass.async_add_executor_job(
                self._recorder.record_frame, STATUS_CHARACTERISTIC_UUID, frame
            )

    @callback
    def _on_command_write(self, channel: str, payload: str, result: CommandResult) -> None:
        if self._recorder.enabled:
            self.hass.async_add_executor_job(
                self._recorder.record_command,
                channel,
                payload,
                result.success,
                result.error,
            )

    def _apply_debug_logging(self, enabled: bool) -> None:
        """Toggle debug logging for the integration and the Bluetooth stack."""
        logger_names = (
            "custom_components.milkbot",
            "bleak",
            "bleak_retry_connector",
        )
        if enabled:
            for name in logger_names:
                logger = logging.getLogger(name)
                if name not in self._original_log_levels:
                    self._original_log_levels[name] = logger.level
                logger.setLevel(logging.DEBUG)
            _LOGGER.info("Milkbot debug logging ENABLED")
        else:
            for name in logger_names:
                logger = logging.getLogger(name)
                logger.setLevel(self._original_log_levels.get(name, logging.NOTSET))
            _LOGGER.info("Milkbot debug logging DISABLED")

    async def async_shutdown(self) -> None:
        """Stop polling, disconnect and release listeners."""
        for unsub in self._unsubs:
            unsub()
        self._unsubs.clear()
        await self.synchronizer.async_stop()
        await self.connection.close()
        if self._recorder.enabled:
            await self._async_stop_recorder()
        if self._debug_logging:
            self._apply_debug_logging(False)
        await super().async_shutdown()

    async def _async_start_recorder(self) -> None:
        """Start traffic recording in the executor."""
        await self.hass.async_add_executor_job(self._recorder.start)

    async def _async_stop_recorder(self) -> None:
        """Stop traffic recording in the executor."""
        await self.hass.async_add_executor_job(self._recorder.stop)
