"""Connection lifecycle for a single Milkbot robot."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .const import (
    DEFAULT_OPERATION_TIMEOUT,
    STATUS_CHARACTERISTIC_UUID,
    STATUS_SERVICE_UUID,
)
from .exceptions import (
    ChannelNotFound,
    ConnectionUnavailable,
    ErrorKind,
    MilkbotError,
    OperationTimeout,
    TransportDisconnected,
)
from .models import ConnectionState
from .transport import GattChannel, Transport

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")


class RobotConnection:
    """Owns the connection state machine and serializes link operations.

    Every read and write issued through this object runs under one lock,
    so a command write can never interleave with a telemetry read on the
    same link. Each operation gets a fixed deadline.

    State transitions:
        DISCONNECTED -> CONNECTING -> CONNECTED   (open succeeded)
        CONNECTING   -> DISCONNECTED              (open failed)
        CONNECTED    -> DISCONNECTED              (close, link drop, staleness)
    """

    def __init__(
        self,
        transport: Transport,
        *,
        operation_timeout: float = DEFAULT_OPERATION_TIMEOUT,
    ) -> None:
        self._transport = transport
        self.operation_timeout = operation_timeout
        self._state = ConnectionState.DISCONNECTED
        self._status_channel: GattChannel | None = None
        self._channels: dict[tuple[str, str], GattChannel] = {}
        self._operation_lock = asyncio.Lock()
        self._state_listeners: list[Callable[[ConnectionState], None]] = []
        self._teardown_callbacks: list[Callable[[], None]] = []
        self._unsub_disconnect: Callable[[], None] | None = None
        # Bumped on every teardown so results of operations issued on an
        # earlier link are discarded.
        self._generation = 0
        self.last_error: ErrorKind | None = None
        self.name_filter: str | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def status_channel(self) -> GattChannel | None:
        return self._status_channel

    def add_state_listener(
        self, listener: Callable[[ConnectionState], None]
    ) -> Callable[[], None]:
        """Call ``listener`` with the new state on every transition."""
        self._state_listeners.append(listener)

        def _remove() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return _remove

    def register_teardown(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` whenever the connection is torn down."""
        self._teardown_callbacks.append(callback)

        def _remove() -> None:
            if callback in self._teardown_callbacks:
                self._teardown_callbacks.remove(callback)

        return _remove

    async def open(self, name_filter: str | None = None) -> bool:
        """Connect to the robot. Returns False (state DISCONNECTED) on any failure."""
        if self._state is not ConnectionState.DISCONNECTED:
            _LOGGER.debug("Ignoring open request while %s", self._state)
            return False

        self.name_filter = name_filter
        self.last_error = None
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._transport.connect(name_filter)
            if generation != self._generation:
                _LOGGER.warning("Connection closed while the robot link was being opened")
                await self._release_superseded_link()
                return False
            self._unsub_disconnect = self._transport.on_disconnect(
                self._handle_transport_disconnect
            )
            if not self._transport.is_connected:
                raise TransportDisconnected("link dropped immediately after it was established")
            status_channel = await self._transport.get_channel(
                STATUS_SERVICE_UUID, STATUS_CHARACTERISTIC_UUID
            )
        except ConnectionUnavailable as err:
            _LOGGER.warning(
                "No robot selected (name filter %r): %s", name_filter or "<any>", err
            )
            await self._abort_open(err.kind)
            return False
        except ChannelNotFound as err:
            _LOGGER.error(
                "Robot connected but does not expose status service %s / %s: %s",
                STATUS_SERVICE_UUID,
                STATUS_CHARACTERISTIC_UUID,
                err,
            )
            await self._abort_open(err.kind)
            return False
        except TransportDisconnected as err:
            _LOGGER.error(
                "Robot disconnected immediately after connect (wrong service, "
                "unsupported device or firmware issue): %s",
                err,
            )
            await self._abort_open(err.kind)
            return False
        except MilkbotError as err:
            _LOGGER.error("Failed to connect to robot: %s", err)
            await self._abort_open(err.kind)
            return False
        except Exception:
            _LOGGER.exception("Unexpected error while connecting to robot")
            await self._abort_open(ErrorKind.TRANSPORT_ERROR)
            return False

        if generation != self._generation:
            # Link dropped or closed while we were resolving channels.
            _LOGGER.warning("Robot disconnected while the connection was being set up")
            await self._release_superseded_link()
            return False

        self._status_channel = status_channel
        self._channels[(STATUS_SERVICE_UUID, STATUS_CHARACTERISTIC_UUID)] = status_channel
        self._set_state(ConnectionState.CONNECTED)
        _LOGGER.info("Connected to robot %s", self._transport.name or self._transport.address)
        return True

    async def close(self, reason: ErrorKind | None = None) -> None:
        """Tear down polling, drop channel handles and disconnect. Idempotent."""
        was_open = self._state is not ConnectionState.DISCONNECTED
        self._teardown(reason)
        await self._disconnect_transport()
        if was_open:
            _LOGGER.info("Disconnected from robot")

    async def get_channel(self, service_uuid: str, uuid: str) -> GattChannel:
        """Resolve (and cache) a channel on the connected robot."""
        if not self.is_connected:
            raise ConnectionUnavailable("Robot is not connected")
        key = (service_uuid, uuid)
        if (channel := self._channels.get(key)) is not None:
            return channel
        generation = self._generation
        channel = await self._transport.get_channel(service_uuid, uuid)
        if generation != self._generation:
            raise TransportDisconnected("Connection closed while resolving channel")
        self._channels[key] = channel
        return channel

    async def read(self, channel: GattChannel) -> bytes:
        """Read a channel under the operation lock."""
        return await self._run_operation(
            f"read of {channel.uuid}", lambda: self._transport.read(channel)
        )

    async def write(self, channel: GattChannel, data: bytes, *, response: bool) -> None:
        """Write a channel under the operation lock."""
        await self._run_operation(
            f"write to {channel.uuid}",
            lambda: self._transport.write(channel, data, response),
        )

    async def _run_operation(
        self, description: str, operation: Callable[[], Awaitable[_T]]
    ) -> _T:
        if not self.is_connected:
            raise ConnectionUnavailable("Robot is not connected")
        generation = self._generation
        async with self._operation_lock:
            if generation != self._generation:
                raise TransportDisconnected(f"Connection closed before {description} ran")
            try:
                async with asyncio.timeout(self.operation_timeout):
                    result = await operation()
            except TimeoutError as err:
                raise OperationTimeout(
                    f"{description} did not complete within {self.operation_timeout:.1f}s"
                ) from err
        if generation != self._generation:
            raise TransportDisconnected(f"Connection closed while {description} was in flight")
        return result

    async def _abort_open(self, reason: ErrorKind) -> None:
        await self.close(reason)

    async def _disconnect_transport(self) -> None:
        try:
            async with asyncio.timeout(self.operation_timeout):
                await self._transport.disconnect()
        except TimeoutError:
            _LOGGER.warning("Timed out disconnecting from robot")
        except MilkbotError as err:
            _LOGGER.warning("Error while disconnecting from robot: %s", err)

    async def _release_superseded_link(self) -> None:
        """Drop a link that finished opening after the manager was torn down."""
        if self._unsub_disconnect is not None:
            self._unsub_disconnect()
            self._unsub_disconnect = None
        await self._disconnect_transport()

    def _handle_transport_disconnect(self) -> None:
        if self._state is ConnectionState.DISCONNECTED:
            return
        _LOGGER.warning("Robot disconnected unexpectedly")
        self._teardown(ErrorKind.TRANSPORT_DISCONNECTED)

    def _teardown(self, reason: ErrorKind | None) -> None:
        if self._unsub_disconnect is not None:
            self._unsub_disconnect()
            self._unsub_disconnect = None
        if self._state is ConnectionState.DISCONNECTED:
            return
        self._generation += 1
        if reason is not None:
            self.last_error = reason
        for callback in list(self._teardown_callbacks):
            try:
                callback()
            except Exception:
                _LOGGER.exception("Error in connection teardown callback")
        self._status_channel = None
        self._channels.clear()
        self._set_state(ConnectionState.DISCONNECTED)

    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        _LOGGER.debug("Connection state %s -> %s", self._state, state)
        self._state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                _LOGGER.exception("Error in connection state listener")
