"""Driver persistence and fleet maintenance alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import settings
from ..db.supabase import RemoteStore, StoreConfig, StoreMode, open_remote_store
from ..errors import DriverNotFound, DuplicateName, StoreUnreachable
from ..models.domain import Driver
from ..schemas.drivers import driver_from_record, driver_to_record
from .cache import LocalCache

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MaintenanceAlert:
    driver_id: str
    vehicle: str
    level: str
    remaining_km: int
    message: str


class DriverStore:
    def __init__(
        self,
        config: StoreConfig,
        remote: RemoteStore | None = None,
        cache: LocalCache | None = None,
    ) -> None:
        self.config = config
        self.table = config.drivers_table
        self.remote = remote if remote is not None else open_remote_store(config)
        self.cache = cache or LocalCache(config.local_root)

    def list_all(self) -> list[Driver]:
        records = None
        if self.config.mode is StoreMode.REMOTE:
            try:
                records = self.remote.select_all(self.table)
            except StoreUnreachable as e:
                logger.debug(f"Driver query failed, falling back to local cache: {e}")
        if records is None:
            records = self.cache.all(self.table)

        drivers: list[Driver] = []
        for driver_id, record in records.items():
            try:
                drivers.append(driver_from_record(record))
            except ValueError as e:
                logger.warning(f"Skipping invalid driver record {driver_id}: {e}")
        return drivers

    def get(self, driver_id: str) -> Driver:
        for driver in self.list_all():
            if driver.id == driver_id:
                return driver
        raise DriverNotFound(driver_id)

    def save(self, driver: Driver) -> Driver:
        """Create or update a driver.

        Raises:
            DuplicateName: a new driver has the same name (case-insensitive) as
                an existing one. Nothing is written.
        """
        drivers = self.list_all()
        is_new = all(existing.id != driver.id for existing in drivers)
        if is_new and any(existing.name.lower() == driver.name.lower() for existing in drivers):
            raise DuplicateName(driver.name)

        record = driver_to_record(driver)
        if self.config.mode is StoreMode.REMOTE:
            try:
                self.remote.upsert(self.table, driver.id, record)
            except StoreUnreachable:
                logger.warning(f"Driver {driver.id} saved locally only")
        self.cache.put(self.table, driver.id, record)
        return driver

    def delete(self, driver_id: str) -> None:
        if self.config.mode is StoreMode.REMOTE:
            try:
                self.remote.delete(self.table, driver_id)
            except StoreUnreachable:
                logger.warning(f"Driver {driver_id} deleted locally only")
        self.cache.remove(self.table, driver_id)

    def maintenance_alerts(self, warning_km: int | None = None) -> list[MaintenanceAlert]:
        """Vehicles close to (WARNING) or past (URGENT) their maintenance mileage."""
        threshold = settings.maintenance_warning_km if warning_km is None else warning_km
        alerts: list[MaintenanceAlert] = []
        for driver in self.list_all():
            if not driver.current_mileage or not driver.next_maintenance_mileage:
                continue
            remaining = driver.next_maintenance_mileage - driver.current_mileage
            if remaining > threshold:
                continue
            vehicle = f"Vehicle {driver.vehicle_plate}" if driver.vehicle_plate else driver.name
            if remaining <= 0:
                level = "URGENT"
                message = f"{vehicle} is {abs(remaining)} km past its maintenance mileage"
            else:
                level = "WARNING"
                message = f"{vehicle} needs maintenance in {remaining} km"
            alerts.append(
                MaintenanceAlert(
                    driver_id=driver.id,
                    vehicle=vehicle,
                    level=level,
                    remaining_km=remaining,
                    message=message,
                )
            )
        return alerts
