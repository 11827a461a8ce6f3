"""Shipment persistence over the remote store and the local cache.

Reads serve this device's unsynced offline snapshot first, then prefer the remote
tier and fall back to the local cache. Writes always reach the local cache, plus
the remote when it is reachable or the code's offline slot when it is not. The
tiers are not kept in sync transactionally.
"""

from __future__ import annotations

import logging
import random
import re
from enum import Enum
from typing import Iterable

from ..config import settings
from ..db.supabase import RemoteStore, StoreConfig, StoreMode, open_remote_store
from ..errors import ConflictError, ShipmentNotFound, StoreUnreachable
from ..models.domain import Driver, Shipment, TrackingStatus
from ..schemas.shipments import shipment_from_record, shipment_to_record
from .cache import LocalCache
from .offline_queue import OfflineQueue

logger = logging.getLogger(__name__)


class StoreWrite(str, Enum):
    """Which tiers a write reached."""

    REMOTE = "remote"
    LOCAL_ONLY = "local_only"


def normalize_code(code: str) -> str:
    return code.strip().upper()


class ShipmentStore:
    def __init__(
        self,
        config: StoreConfig,
        remote: RemoteStore | None = None,
        cache: LocalCache | None = None,
        queue: OfflineQueue | None = None,
    ) -> None:
        self.config = config
        self.table = config.shipments_table
        self.remote = remote if remote is not None else open_remote_store(config)
        self.cache = cache or LocalCache(config.local_root)
        self.queue = queue or OfflineQueue(self.cache)
        self._online = config.mode is StoreMode.REMOTE

    @property
    def is_online(self) -> bool:
        """Outcome of the most recent remote call (always False when local-only)."""
        return self.config.mode is StoreMode.REMOTE and self._online

    def mark_offline(self) -> None:
        if self._online:
            logger.warning("Remote store unreachable, switching to offline mode")
        self._online = False

    def mark_online(self) -> None:
        if self.config.mode is not StoreMode.REMOTE:
            return
        if not self._online:
            logger.info("Remote store reachable again")
        self._online = True

    def ping(self) -> bool:
        reachable = self.remote.ping()
        if reachable:
            self.mark_online()
        else:
            self.mark_offline()
        return reachable

    def _remote_select(self, code: str) -> dict | None:
        record = self.remote.select(self.table, code)
        self.mark_online()
        return record

    def get(self, code: str) -> Shipment:
        """Latest snapshot for a code.

        A pending offline snapshot wins over both tiers until it is flushed:
        it is what the reconnect flush will write.

        Raises:
            ShipmentNotFound: neither tier knows the code.
        """
        code = normalize_code(code)
        pending = self.queue.get(code)
        if pending is not None:
            return shipment_from_record(pending)

        if self.config.mode is StoreMode.REMOTE:
            try:
                record = self._remote_select(code)
            except StoreUnreachable:
                self.mark_offline()
            else:
                if record is None:
                    raise ShipmentNotFound(code)
                self.cache.put(self.table, code, record)
                return shipment_from_record(record)

        record = self.cache.get(self.table, code)
        if record is None:
            raise ShipmentNotFound(code)
        return shipment_from_record(record)

    def upsert(self, shipment: Shipment, *, expected_version: int | None = None) -> StoreWrite:
        """Write a shipment to both tiers, or locally plus its offline slot.

        The shipment's ``version`` is bumped in place. With ``expected_version``
        the remote write only succeeds if the stored version still matches.

        Raises:
            ConflictError: ``expected_version`` no longer matches the remote record.
        """
        shipment.code = normalize_code(shipment.code)
        shipment.version += 1
        record = shipment_to_record(shipment)

        if self.config.mode is StoreMode.REMOTE:
            try:
                self.remote.upsert(self.table, shipment.code, record, expected_version=expected_version)
            except StoreUnreachable:
                self.mark_offline()
            except ConflictError:
                self.mark_online()
                shipment.version -= 1
                raise
            else:
                self.mark_online()
                self.cache.put(self.table, shipment.code, record)
                # the remote now holds a newer snapshot than the buffered one
                self.queue.discard(shipment.code)
                return StoreWrite.REMOTE

        self._write_local(shipment.code, record)
        return StoreWrite.LOCAL_ONLY

    def queue_offline(self, shipment: Shipment) -> None:
        """Write a snapshot locally without trying the remote.

        In remote mode the snapshot also replaces the code's offline slot; in
        local-only mode the cache is the store of record.
        """
        shipment.code = normalize_code(shipment.code)
        shipment.version += 1
        self._write_local(shipment.code, shipment_to_record(shipment))

    def _write_local(self, code: str, record: dict) -> None:
        self.cache.put(self.table, code, record)
        if self.config.mode is StoreMode.REMOTE:
            self.queue.put(code, record)
            logger.warning(f"Shipment {code} saved locally, pending sync")
        else:
            logger.debug(f"Shipment {code} saved to the local store")

    def pending_codes(self) -> list[str]:
        return self.queue.pending_codes()

    def flush_offline(self, code: str | None = None) -> list[str]:
        """Push buffered snapshots to the remote store.

        Each buffered snapshot overwrites the remote record unconditionally:
        edits made remotely while this device was offline are lost (last write
        wins). Stops at the first unreachable write; that slot stays pending.

        Returns:
            Codes whose slot was flushed and cleared.
        """
        if self.config.mode is not StoreMode.REMOTE:
            return []
        codes = [normalize_code(code)] if code else self.queue.pending_codes()
        flushed: list[str] = []
        for pending_code in codes:
            record = self.queue.get(pending_code)
            if record is None:
                continue
            try:
                self.remote.upsert(self.table, pending_code, record)
            except StoreUnreachable:
                self.mark_offline()
                logger.warning(f"Sync of {pending_code} failed, keeping offline entry")
                break
            self.mark_online()
            self.cache.put(self.table, pending_code, record)
            self.queue.discard(pending_code)
            flushed.append(pending_code)
        if flushed:
            logger.info(f"Synced {len(flushed)} offline shipment(s): {flushed}")
        return flushed

    def delete(self, code: str) -> StoreWrite:
        code = normalize_code(code)
        outcome = StoreWrite.LOCAL_ONLY
        if self.config.mode is StoreMode.REMOTE:
            try:
                self.remote.delete(self.table, code)
            except StoreUnreachable:
                self.mark_offline()
                logger.warning(f"Shipment {code} deleted locally only; remote copy remains")
            else:
                self.mark_online()
                outcome = StoreWrite.REMOTE
        self.cache.remove(self.table, code)
        self.queue.discard(code)
        return outcome

    def list_all(self) -> dict[str, Shipment]:
        records: dict[str, dict] | None = None
        if self.config.mode is StoreMode.REMOTE:
            try:
                records = self.remote.select_all(self.table)
                self.mark_online()
            except StoreUnreachable:
                self.mark_offline()
        if records is None:
            records = self.cache.all(self.table)
        records = {**records, **self.queue.records()}
        shipments: dict[str, Shipment] = {}
        for code, record in records.items():
            try:
                shipments[code] = shipment_from_record(record)
            except ValueError as e:
                logger.warning(f"Skipping invalid shipment record {code}: {e}")
        return shipments

    def generate_unique_code(self, company: str) -> str:
        """New ``<PREFIX><4 digits>`` code not used by any stored shipment."""
        prefix = company.strip().upper()
        if prefix not in settings.company_prefixes:
            raise ValueError(f"Unknown company '{company}'. Expected one of {settings.company_prefixes}")
        existing = set(self.list_all())
        candidates = [f"{prefix}{number}" for number in range(1000, 10000)]
        free = [candidate for candidate in candidates if candidate not in existing]
        if not free:
            raise ValueError(f"No free shipment codes left for {prefix}")
        return random.choice(free)

    def find_active_by_driver_phone(self, phone: str, drivers: Iterable[Driver]) -> Shipment | None:
        """The undelivered shipment of the driver whose phone matches (digits only)."""
        search = re.sub(r"\D", "", phone)
        if not search:
            return None
        driver = None
        for candidate in drivers:
            candidate_phone = re.sub(r"\D", "", candidate.phone or "")
            if candidate_phone and (search in candidate_phone or candidate_phone in search):
                driver = candidate
                break
        if driver is None:
            return None
        for shipment in self.list_all().values():
            if shipment.driver_id == driver.id and shipment.status is not TrackingStatus.DELIVERED:
                return shipment
        return None
