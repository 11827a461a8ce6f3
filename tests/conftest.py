import copy
from datetime import datetime, timezone
from pathlib import Path

import pytest

from rodovar.db.supabase import StoreConfig, StoreMode
from rodovar.errors import ConflictError, PositionUnavailable, StoreUnreachable
from rodovar.models.domain import Coordinates, CurrentLocation, Driver, RouteStop, Shipment, TrackingStatus
from rodovar.persistence.cache import LocalCache
from rodovar.persistence.shipments import ShipmentStore

SAO_PAULO = Coordinates(-23.5505, -46.6333)
CAMPINAS = Coordinates(-22.9099, -47.0626)
RIO = Coordinates(-22.9068, -43.1729)


class FakeRemote:
    """In-memory stand-in for the Supabase tables."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict]] = {}
        self.available = True
        self.upserts: list[tuple[str, str, dict]] = []

    def _check(self) -> None:
        if not self.available:
            raise StoreUnreachable("remote down")

    def select(self, table, key):
        self._check()
        row = self.tables.get(table, {}).get(key)
        return copy.deepcopy(row["data"]) if row else None

    def select_all(self, table):
        self._check()
        return {key: copy.deepcopy(row["data"]) for key, row in self.tables.get(table, {}).items()}

    def upsert(self, table, key, value, *, expected_version=None):
        self._check()
        rows = self.tables.setdefault(table, {})
        if expected_version is not None:
            current = rows.get(key)
            if current is None or current["version"] != expected_version:
                raise ConflictError(key, expected_version)
        rows[key] = {"version": int(value.get("version", 0)), "data": copy.deepcopy(value)}
        self.upserts.append((table, key, copy.deepcopy(value)))

    def delete(self, table, key):
        self._check()
        self.tables.get(table, {}).pop(key, None)

    def ping(self):
        return self.available


class FakeGeocoder:
    """Resolves names from a fixed table; unknown names give the (0, 0) sentinel."""

    def __init__(self, places: dict[str, Coordinates] | None = None) -> None:
        self.places = places or {}
        self.queries: list[str] = []

    def _lookup(self, name: str) -> Coordinates:
        self.queries.append(name)
        return self.places.get(name, Coordinates(0.0, 0.0))

    def coordinates_for_city(self, city, state):
        return self._lookup(city)

    def coordinates_for_location(self, location, detailed_address=None):
        if detailed_address and detailed_address in self.places:
            return self._lookup(detailed_address)
        return self._lookup(location)


class StaticPosition:
    def __init__(self, position: Coordinates | None = None, reason: str = "unavailable") -> None:
        self.position = position
        self.reason = reason
        self.calls = 0

    async def current_position(self) -> Coordinates:
        self.calls += 1
        if self.position is None:
            raise PositionUnavailable(self.reason)
        return self.position


def make_shipment(code: str = "RODOVAR1234", **overrides) -> Shipment:
    values = dict(
        code=code,
        status=TrackingStatus.IN_TRANSIT,
        current_location=CurrentLocation(city="Campinas", state="SP", coordinates=CAMPINAS),
        origin="Sao Paulo",
        destination="Rio de Janeiro",
        destination_coordinates=RIO,
        origin_coordinates=SAO_PAULO,
        last_update=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        message="Load travelling to destination.",
    )
    values.update(overrides)
    return Shipment(**values)


def make_stop(stop_id: str, lat: float, lng: float) -> RouteStop:
    return RouteStop(id=stop_id, address=f"Street {stop_id}", city=f"City {stop_id}", coordinates=Coordinates(lat, lng))


def make_driver(driver_id: str = "d1", name: str = "Joao Silva", **overrides) -> Driver:
    values = dict(id=driver_id, name=name, phone="(11) 98765-4321", vehicle_plate="ABC1D23")
    values.update(overrides)
    return Driver(**values)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def store_config(tmp_path: Path) -> StoreConfig:
    return StoreConfig(mode=StoreMode.REMOTE, local_root=tmp_path)


@pytest.fixture
def cache(tmp_path: Path) -> LocalCache:
    return LocalCache(tmp_path)


@pytest.fixture
def store(store_config: StoreConfig, remote: FakeRemote, cache: LocalCache) -> ShipmentStore:
    return ShipmentStore(store_config, remote=remote, cache=cache)


@pytest.fixture
def local_store(tmp_path: Path) -> ShipmentStore:
    config = StoreConfig(mode=StoreMode.LOCAL_ONLY, local_root=tmp_path)
    return ShipmentStore(config)
