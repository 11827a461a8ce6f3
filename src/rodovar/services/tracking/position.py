"""Device position sources and the stay-awake hint."""

from __future__ import annotations

import logging
import time
from typing import Protocol

from ...config import settings
from ...errors import PositionUnavailable
from ...models.domain import Coordinates

logger = logging.getLogger(__name__)


class PositionSource(Protocol):
    async def current_position(self) -> Coordinates:
        """One-shot fix. Raises PositionUnavailable (denied, unavailable, timeout)."""
        ...


class WakeLock(Protocol):
    async def acquire(self) -> None: ...

    async def release(self) -> None: ...


class NullWakeLock:
    """Used when the device offers no stay-awake hint."""

    def __init__(self) -> None:
        self.held = False

    async def acquire(self) -> None:
        self.held = True

    async def release(self) -> None:
        self.held = False


class RelayedPositionSource:
    """Latest fix pushed by the driver's device.

    The device posts its GPS readings; ticks read the newest one. A fix older
    than ``max_age_seconds`` counts as a timeout, and a device that reported a
    permission error stays ``denied`` until it sends a fix again.
    """

    def __init__(self, max_age_seconds: float | None = None, clock=time.monotonic) -> None:
        self.max_age_seconds = max_age_seconds if max_age_seconds is not None else settings.position_max_age_seconds
        self._clock = clock
        self._fix: Coordinates | None = None
        self._received_at: float | None = None
        self._error: str | None = None

    def push(self, position: Coordinates) -> None:
        self._fix = position
        self._received_at = self._clock()
        self._error = None

    def report_error(self, reason: str) -> None:
        logger.info(f"Device reported position error: {reason}")
        self._error = reason

    async def current_position(self) -> Coordinates:
        if self._error:
            raise PositionUnavailable(self._error)
        if self._fix is None or self._received_at is None:
            raise PositionUnavailable("unavailable", "no fix received yet")
        age = self._clock() - self._received_at
        if age > self.max_age_seconds:
            raise PositionUnavailable("timeout", f"last fix is {age:.0f}s old")
        return self._fix
