from pathlib import Path

import pytest

from rodovar.db.supabase import StoreConfig, StoreMode
from rodovar.errors import DriverNotFound, DuplicateName
from rodovar.persistence.drivers import DriverStore

from conftest import make_driver


@pytest.fixture
def drivers(store_config: StoreConfig, remote, cache) -> DriverStore:
    return DriverStore(store_config, remote=remote, cache=cache)


def test_save_and_list(drivers: DriverStore, remote) -> None:
    drivers.save(make_driver())

    assert [d.name for d in drivers.list_all()] == ["Joao Silva"]
    assert remote.tables["drivers"]["d1"]["data"]["vehiclePlate"] == "ABC1D23"
    assert drivers.get("d1").phone == "(11) 98765-4321"


def test_duplicate_name_rejected_before_write(drivers: DriverStore, remote) -> None:
    drivers.save(make_driver())

    with pytest.raises(DuplicateName):
        drivers.save(make_driver(driver_id="d2", name="JOAO SILVA"))

    assert list(remote.tables["drivers"]) == ["d1"]


def test_updating_existing_driver_keeps_name(drivers: DriverStore) -> None:
    drivers.save(make_driver())

    drivers.save(make_driver(vehicle_plate="XYZ9A88"))

    assert drivers.get("d1").vehicle_plate == "XYZ9A88"


def test_get_unknown_driver(drivers: DriverStore) -> None:
    with pytest.raises(DriverNotFound):
        drivers.get("nope")


def test_falls_back_to_cache_when_remote_down(drivers: DriverStore, remote) -> None:
    drivers.save(make_driver())
    remote.available = False

    assert [d.id for d in drivers.list_all()] == ["d1"]

    drivers.delete("d1")
    assert drivers.list_all() == []


def test_local_only_store(tmp_path: Path) -> None:
    drivers = DriverStore(StoreConfig(mode=StoreMode.LOCAL_ONLY, local_root=tmp_path))

    drivers.save(make_driver())

    assert drivers.get("d1").name == "Joao Silva"


def test_maintenance_alerts(drivers: DriverStore) -> None:
    drivers.save(make_driver("ok", "Ana", current_mileage=10_000, next_maintenance_mileage=20_000))
    drivers.save(make_driver("soon", "Bruno", current_mileage=19_600, next_maintenance_mileage=20_000))
    drivers.save(make_driver("late", "Carla", current_mileage=20_150, next_maintenance_mileage=20_000, vehicle_plate=None))
    drivers.save(make_driver("unknown", "Davi"))

    alerts = {alert.driver_id: alert for alert in drivers.maintenance_alerts(warning_km=500)}

    assert set(alerts) == {"soon", "late"}
    assert alerts["soon"].level == "WARNING"
    assert alerts["soon"].remaining_km == 400
    assert alerts["soon"].vehicle == "Vehicle ABC1D23"
    assert alerts["late"].level == "URGENT"
    assert alerts["late"].remaining_km == -150
    assert "150 km past" in alerts["late"].message
    assert alerts["late"].vehicle == "Carla"
