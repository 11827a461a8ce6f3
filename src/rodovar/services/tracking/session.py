"""Live tracking sessions.

A session reports the driver's position for one shipment every
``tracking_interval_seconds``::

    IDLE --start()--> LIVE --stop()--> IDLE
                       |
                       +--complete()--> COMPLETED   (terminal, refuses start())

Each tick fetches the latest shipment, splices in the new fix (only the
tracker-owned fields) and writes it back, or buffers it in the offline slot
when the store is unreachable. Ticks for one code never overlap: a tick that
would start while an earlier fetch/write is still outstanding is skipped.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Callable

from ...config import settings
from ...errors import ConflictError, PositionUnavailable, SessionCompleted, ShipmentNotFound
from ...models.domain import Shipment
from ...persistence.cache import SessionMarkers
from ...persistence.shipments import ShipmentStore, StoreWrite, normalize_code
from .merge import apply_position
from .position import NullWakeLock, PositionSource, RelayedPositionSource, WakeLock

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LIVE = "live"
    COMPLETED = "completed"


class TickOutcome(str, Enum):
    SENT = "sent"
    QUEUED = "queued"
    SKIPPED_BUSY = "skipped_busy"
    SKIPPED_NO_POSITION = "skipped_no_position"
    SKIPPED_TIMEOUT = "skipped_timeout"
    SKIPPED_NOT_FOUND = "skipped_not_found"
    SKIPPED_CONFLICT = "skipped_conflict"
    SKIPPED_COMPLETED = "skipped_completed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TrackingSession:
    def __init__(
        self,
        code: str,
        store: ShipmentStore,
        position_source: PositionSource,
        *,
        markers: SessionMarkers | None = None,
        wake_lock: WakeLock | None = None,
        interval: float | None = None,
        io_timeout: float | None = None,
        compare_and_swap: bool | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.code = normalize_code(code)
        self.store = store
        self.position_source = position_source
        self.markers = markers or SessionMarkers(store.cache)
        self.wake_lock = wake_lock or NullWakeLock()
        self.interval = interval if interval is not None else settings.tracking_interval_seconds
        self.io_timeout = io_timeout if io_timeout is not None else settings.io_timeout_seconds
        self.compare_and_swap = (
            compare_and_swap if compare_and_swap is not None else settings.tracking_compare_and_swap
        )
        self._clock = clock
        self.state = SessionState.IDLE
        self.last_outcome: TickOutcome | None = None
        self.last_snapshot: Shipment | None = None
        self._task: asyncio.Task | None = None
        self._tick_lock = asyncio.Lock()
        self._inflight: asyncio.Future | None = None

    @property
    def is_live(self) -> bool:
        return self.state is SessionState.LIVE

    async def _io(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run blocking store I/O in a thread, bounded by ``io_timeout``.

        On timeout the call keeps running in the background and is remembered
        as in flight, so the next tick is skipped rather than interleaved.
        """
        future = asyncio.ensure_future(asyncio.to_thread(func, *args))
        self._inflight = future
        return await asyncio.wait_for(asyncio.shield(future), self.io_timeout)

    def _io_outstanding(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def start(self) -> None:
        """Arm the periodic tick.

        Raises:
            SessionCompleted: the shipment is already delivered.
            ShipmentNotFound: the code is unknown.
        """
        if self.state is SessionState.COMPLETED:
            raise SessionCompleted(self.code)
        if self.state is SessionState.LIVE:
            return

        try:
            shipment = await self._io(self.store.get, self.code)
        except asyncio.TimeoutError:
            logger.warning(f"Could not confirm status of {self.code} before starting, starting anyway")
        else:
            if shipment.is_delivered:
                self.state = SessionState.COMPLETED
                self.markers.clear_active(self.code)
                raise SessionCompleted(self.code)
            self.last_snapshot = shipment

        await self._arm()
        logger.info(f"Live tracking started for {self.code} (every {self.interval:g}s)")

    async def _arm(self) -> None:
        self.state = SessionState.LIVE
        self.markers.mark_active(self.code)
        try:
            await self.wake_lock.acquire()
        except Exception as e:
            logger.warning(f"Stay-awake hint unavailable for {self.code}: {e}")
        self._task = asyncio.create_task(self._run(), name=f"tracking-{self.code}")

    async def _run(self) -> None:
        while self.state is SessionState.LIVE:
            await asyncio.sleep(self.interval)
            if self.state is not SessionState.LIVE:
                break
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Tracking tick for {self.code} failed")

    async def tick(self) -> TickOutcome:
        """Report the current position once. Also used for manual updates."""
        outcome = await self._tick()
        self.last_outcome = outcome
        if outcome not in (TickOutcome.SENT, TickOutcome.QUEUED):
            logger.debug(f"Tick for {self.code}: {outcome.value}")
        return outcome

    async def _tick(self) -> TickOutcome:
        if self.state is SessionState.COMPLETED:
            return TickOutcome.SKIPPED_COMPLETED
        if self._tick_lock.locked() or self._io_outstanding():
            return TickOutcome.SKIPPED_BUSY

        async with self._tick_lock:
            try:
                position = await asyncio.wait_for(self.position_source.current_position(), self.io_timeout)
            except PositionUnavailable as e:
                logger.info(f"Skipping tick for {self.code}: {e}")
                return TickOutcome.SKIPPED_NO_POSITION
            except asyncio.TimeoutError:
                return TickOutcome.SKIPPED_TIMEOUT

            try:
                fresh = await self._io(self.store.get, self.code)
            except ShipmentNotFound:
                logger.warning(f"Shipment {self.code} not found, skipping tick")
                return TickOutcome.SKIPPED_NOT_FOUND
            except asyncio.TimeoutError:
                return TickOutcome.SKIPPED_TIMEOUT

            if fresh.is_delivered:
                await self._close(SessionState.COMPLETED)
                return TickOutcome.SKIPPED_COMPLETED

            merged = apply_position(fresh, position, self._clock())
            if self.state is SessionState.COMPLETED:
                # finalized while we were fetching
                return TickOutcome.SKIPPED_COMPLETED
            try:
                if self.store.is_online:
                    expected = fresh.version if self.compare_and_swap else None
                    written = await self._io(partial(self.store.upsert, merged, expected_version=expected))
                    outcome = TickOutcome.SENT if written is StoreWrite.REMOTE else TickOutcome.QUEUED
                else:
                    await self._io(self.store.queue_offline, merged)
                    outcome = TickOutcome.QUEUED
            except ConflictError as e:
                logger.warning(f"Skipping tick for {self.code}: {e}")
                return TickOutcome.SKIPPED_CONFLICT
            except asyncio.TimeoutError:
                return TickOutcome.SKIPPED_TIMEOUT

            self.last_snapshot = merged
            return outcome

    async def _cancel_timer(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if self._io_outstanding():
            # let a write already handed to the store land before we return
            await asyncio.wait({self._inflight}, timeout=self.io_timeout)

    async def _close(self, state: SessionState) -> None:
        self.state = state
        await self._cancel_timer()
        try:
            await self.wake_lock.release()
        except Exception as e:
            logger.warning(f"Failed to release stay-awake hint for {self.code}: {e}")
        self.markers.clear_active(self.code)

    async def stop(self) -> None:
        """Disarm the timer. No tick runs after this returns."""
        if self.state is not SessionState.LIVE:
            return
        await self._close(SessionState.IDLE)
        logger.info(f"Live tracking stopped for {self.code}")

    async def suspend(self) -> None:
        """Disarm the timer but keep the active marker, so a restart restores the session."""
        if self.state is not SessionState.LIVE:
            return
        self.state = SessionState.IDLE
        await self._cancel_timer()
        try:
            await self.wake_lock.release()
        except Exception as e:
            logger.warning(f"Failed to release stay-awake hint for {self.code}: {e}")

    async def complete(self) -> None:
        """Terminal transition taken when the delivery is finalized."""
        if self.state is SessionState.COMPLETED:
            return
        await self._close(SessionState.COMPLETED)
        logger.info(f"Tracking closed for delivered shipment {self.code}")

    async def reopen(self, previous: SessionState) -> None:
        """Undo ``complete()`` when the delivered snapshot could not be written.

        A session that was live before is re-armed.
        """
        if self.state is not SessionState.COMPLETED or previous is SessionState.COMPLETED:
            return
        if previous is SessionState.LIVE:
            await self._arm()
        else:
            self.state = SessionState.IDLE
        logger.warning(f"Tracking for {self.code} reopened, delivery was not recorded")


class SessionManager:
    """One tracking session per shipment code for this process."""

    def __init__(
        self,
        store: ShipmentStore,
        markers: SessionMarkers | None = None,
        position_source_factory: Callable[[str], PositionSource] | None = None,
        wake_lock_factory: Callable[[], WakeLock] = NullWakeLock,
        **session_options: Any,
    ) -> None:
        self.store = store
        self.markers = markers or SessionMarkers(store.cache)
        self.position_source_factory = position_source_factory or (lambda code: RelayedPositionSource())
        self.wake_lock_factory = wake_lock_factory
        self.session_options = session_options
        self.sessions: dict[str, TrackingSession] = {}

    def session(self, code: str) -> TrackingSession:
        code = normalize_code(code)
        session = self.sessions.get(code)
        if session is None:
            session = TrackingSession(
                code,
                self.store,
                self.position_source_factory(code),
                markers=self.markers,
                wake_lock=self.wake_lock_factory(),
                **self.session_options,
            )
            self.sessions[code] = session
        return session

    async def start(self, code: str) -> TrackingSession:
        session = self.session(code)
        await session.start()
        self.markers.remember_driver_code(session.code)
        return session

    async def stop(self, code: str) -> TrackingSession:
        session = self.session(code)
        await session.stop()
        return session

    async def restore(self) -> list[str]:
        """Re-arm sessions that were live when the process last stopped."""
        restored: list[str] = []
        for code in self.markers.active_codes():
            try:
                await self.session(code).start()
            except (SessionCompleted, ShipmentNotFound) as e:
                logger.info(f"Not restoring tracking for {code}: {e}")
                self.markers.clear_active(code)
                continue
            restored.append(code)
        if restored:
            logger.info(f"Restored live tracking for {restored}")
        return restored

    async def shutdown(self) -> None:
        """Stop timers without forgetting which sessions were live."""
        for session in self.sessions.values():
            await session.suspend()
