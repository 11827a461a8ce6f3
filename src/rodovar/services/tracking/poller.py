"""Read-only position refresh for people watching a shipment."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable

from ...config import settings
from ...errors import ShipmentNotFound
from ...models.domain import Shipment
from ...persistence.shipments import ShipmentStore, normalize_code
from ..progress import TrackingView, describe_progress

logger = logging.getLogger(__name__)

ViewCallback = Callable[[Shipment, TrackingView], Awaitable[None] | None]


class ViewerPoller:
    """Refreshes a shipment every few seconds while it is live.

    Never writes. Independent from the driver's tracking session; it stops by
    itself once the shipment is delivered or no longer live.
    """

    def __init__(
        self,
        code: str,
        store: ShipmentStore,
        on_update: ViewCallback,
        interval: float | None = None,
    ) -> None:
        self.code = normalize_code(code)
        self.store = store
        self.on_update = on_update
        self.interval = interval if interval is not None else settings.viewer_poll_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> bool:
        """Fetch and publish one refresh. Returns False when polling should end."""
        try:
            shipment = await asyncio.to_thread(self.store.get, self.code)
        except ShipmentNotFound:
            logger.info(f"Shipment {self.code} disappeared, stopping viewer poll")
            return False

        result = self.on_update(shipment, describe_progress(shipment))
        if asyncio.iscoroutine(result):
            await result
        return shipment.is_live and not shipment.is_delivered

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                keep_going = await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Viewer poll for {self.code} failed")
                continue
            if not keep_going:
                break

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self._run(), name=f"viewer-{self.code}")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
