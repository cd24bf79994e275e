"""Telemetry polling and snapshot broadcast for the Milkbot channel layer."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from .connection import RobotConnection
from .const import STALE_READ_LIMIT, STATUS_POLL_INTERVAL_SECONDS
from .exceptions import ErrorKind, MilkbotError, TransportDisconnected
from .models import TelemetrySnapshot
from .telemetry import decode_status

_LOGGER = logging.getLogger(__name__)


class SnapshotBroadcast:
    """Single-slot latest-value cell.

    Publishing replaces the value and bumps a version number. Subscribers
    keep their own cursor (the last version they saw), so a slow
    subscriber only ever misses intermediate values and never holds up
    the publisher or another subscriber.
    """

    def __init__(self) -> None:
        self._value: TelemetrySnapshot | None = None
        self._version = 0
        self._changed = asyncio.Event()
        self._listeners: list[Callable[[TelemetrySnapshot | None], None]] = []

    @property
    def latest(self) -> TelemetrySnapshot | None:
        return self._value

    @property
    def version(self) -> int:
        return self._version

    def publish(self, value: TelemetrySnapshot | None) -> None:
        """Replace the current value and wake every waiter."""
        self._value = value
        self._version += 1
        # Swap the event so waiters woken by this publish never see a
        # later clear().
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                _LOGGER.exception("Error in snapshot listener")

    def clear(self) -> None:
        """Publish ``None`` if a value is held."""
        if self._value is not None:
            self.publish(None)

    def add_listener(
        self, listener: Callable[[TelemetrySnapshot | None], None]
    ) -> Callable[[], None]:
        """Call ``listener`` synchronously on every publish."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def subscribe(self) -> SnapshotSubscription:
        """Return a subscription whose cursor starts at the current version."""
        return SnapshotSubscription(self)

    async def _wait_newer(self, version: int) -> None:
        while self._version <= version:
            await self._changed.wait()


class SnapshotSubscription:
    """Independent reader of a SnapshotBroadcast."""

    def __init__(self, broadcast: SnapshotBroadcast) -> None:
        self._broadcast = broadcast
        self._cursor = broadcast.version

    @property
    def latest(self) -> TelemetrySnapshot | None:
        """Return the latest value and move the cursor to it."""
        self._cursor = self._broadcast.version
        return self._broadcast.latest

    @property
    def has_pending(self) -> bool:
        return self._broadcast.version > self._cursor

    async def wait_next(self) -> TelemetrySnapshot | None:
        """Wait for a value newer than the cursor and return the latest one."""
        await self._broadcast._wait_newer(self._cursor)
        return self.latest


class StatusSynchronizer:
    """Polls the status channel and publishes decoded snapshots.

    A tick fires every ``interval`` seconds while the connection is up.
    If the previous read has not finished the tick is skipped, never
    queued. A sequence number that stays the same for ``stale_limit``
    consecutive reads means the robot firmware stopped updating the
    frame and the connection is closed.
    """

    def __init__(
        self,
        connection: RobotConnection,
        broadcast: SnapshotBroadcast | None = None,
        *,
        interval: float = STATUS_POLL_INTERVAL_SECONDS,
        stale_limit: int = STALE_READ_LIMIT,
        on_frame: Callable[[bytes], None] | None = None,
    ) -> None:
        self._connection = connection
        self.broadcast = broadcast or SnapshotBroadcast()
        self._interval = interval
        self._stale_limit = stale_limit
        self._on_frame = on_frame
        self._tick_task: asyncio.Task[None] | None = None
        self._read_task: asyncio.Task[None] | None = None
        self.last_sequence: int | None = None
        self._seen_frame = False
        self.stale_count = 0
        self.skipped_ticks = 0
        self.read_failures = 0
        self._unsub_teardown = connection.register_teardown(self.stop)

    @property
    def in_flight(self) -> bool:
        return self._read_task is not None and not self._read_task.done()

    @property
    def running(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def start(self) -> None:
        """Start the tick loop. No-op if already running."""
        if self.running:
            return
        self._reset()
        self._tick_task = asyncio.get_running_loop().create_task(
            self._tick_loop(), name="milkbot_status_poll"
        )
        _LOGGER.debug("Status polling started (interval %.1fs)", self._interval)

    def stop(self) -> None:
        """Stop polling, clear the published snapshot and reset counters."""
        current = asyncio.current_task() if _has_running_loop() else None
        for task in (self._tick_task, self._read_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        if self._tick_task is not None:
            _LOGGER.debug("Status polling stopped")
        self._tick_task = None
        self._read_task = None
        self._reset()
        self.broadcast.clear()

    async def async_stop(self) -> None:
        """Stop polling and wait for the tick loop to finish."""
        tasks = [t for t in (self._tick_task, self._read_task) if t is not None]
        self.stop()
        for task in tasks:
            if task is asyncio.current_task():
                continue
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def detach(self) -> None:
        """Stop and unregister from the connection's teardown callbacks."""
        self.stop()
        self._unsub_teardown()

    def tick(self) -> asyncio.Task[None] | None:
        """Run one tick. Returns the spawned read task, if any."""
        if not self._connection.is_connected:
            return None
        if self.in_flight:
            self.skipped_ticks += 1
            _LOGGER.debug("Status read still in flight, skipping tick")
            return None
        self._read_task = asyncio.get_running_loop().create_task(
            self._read_status(), name="milkbot_status_read"
        )
        return self._read_task

    async def poll_once(self) -> None:
        """Run one tick and wait for its read to finish."""
        if (task := self.tick()) is not None:
            await task

    async def _tick_loop(self) -> None:
        while True:
            self.tick()
            await asyncio.sleep(self._interval)

    async def _read_status(self) -> None:
        channel = self._connection.status_channel
        if channel is None:
            return
        try:
            data = await self._connection.read(channel)
        except TransportDisconnected as err:
            _LOGGER.debug("Status read discarded: %s", err)
            return
        except MilkbotError as err:
            self.read_failures += 1
            _LOGGER.warning("Status read failed: %s", err)
            return

        if self._on_frame is not None:
            try:
                self._on_frame(data)
            except Exception:
                _LOGGER.exception("Error in status frame hook")

        snapshot = decode_status(data)
        # A missing sequence number repeats like any other value.
        if self._seen_frame and snapshot.sequence == self.last_sequence:
            self.stale_count += 1
            if self.stale_count >= self._stale_limit:
                _LOGGER.warning(
                    "Status sequence %s unchanged for %d reads, disconnecting",
                    snapshot.sequence,
                    self.stale_count,
                )
                await self._connection.close(ErrorKind.STALENESS_LIMIT_EXCEEDED)
            return

        self.stale_count = 0
        self.last_sequence = snapshot.sequence
        self._seen_frame = True
        self.broadcast.publish(snapshot)

    def _reset(self) -> None:
        self.last_sequence = None
        self._seen_frame = False
        self.stale_count = 0


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
