"""Online/offline signal and reconciliation of the offline buffer."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from ...config import settings
from ...persistence.shipments import ShipmentStore

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """Tracks whether the remote store is reachable and flushes on reconnect.

    Two signals feed it: explicit device events (`set_online`) and a probe
    loop that pings the remote while the store is offline or has buffered
    writes. Reconnecting replays each offline slot with an unconditional
    upsert, so the buffered snapshot replaces whatever the remote holds.
    """

    def __init__(self, store: ShipmentStore, probe_interval: float | None = None) -> None:
        self.store = store
        self.probe_interval = probe_interval if probe_interval is not None else settings.connectivity_probe_seconds
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    @property
    def online(self) -> bool:
        return self.store.is_online

    async def set_online(self, online: bool) -> list[str]:
        """Apply a connectivity event; going online triggers reconciliation."""
        if not online:
            self.store.mark_offline()
            return []
        self.store.mark_online()
        return await self.reconcile()

    async def reconcile(self) -> list[str]:
        """Flush every pending offline slot. Returns the codes synced."""
        async with self._lock:
            if not self.store.pending_codes():
                return []
            return await asyncio.to_thread(self.store.flush_offline)

    async def probe(self) -> bool:
        """One connectivity check; reconciles if the remote answers."""
        if self.store.is_online and not self.store.pending_codes():
            return True
        reachable = await asyncio.to_thread(self.store.ping)
        if reachable:
            await self.reconcile()
        return reachable

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.probe_interval)
            try:
                await self.probe()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Connectivity probe failed")

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="connectivity-probe")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
