import pytest

from rodovar.errors import DriverNotFound
from rodovar.models.domain import Coordinates, TrackingStatus
from rodovar.persistence.drivers import DriverStore
from rodovar.persistence.shipments import ShipmentStore, StoreWrite
from rodovar.schemas.shipments import SaveShipmentRequest, StopInput
from rodovar.services.shipments import save_shipment

from conftest import CAMPINAS, RIO, SAO_PAULO, FakeGeocoder, make_driver, make_shipment

PLACES = {
    "Campinas": CAMPINAS,
    "Sao Paulo": SAO_PAULO,
    "Rio de Janeiro": RIO,
    "Taubate": Coordinates(-23.0264, -45.5553),
    "Resende": Coordinates(-22.4705, -44.4509),
    "Jacarei": Coordinates(-23.3053, -45.9658),
}


def _request(**overrides) -> SaveShipmentRequest:
    values = dict(
        code="rodovar1234",
        city="Campinas",
        state="sp",
        origin="Sao Paulo",
        destination="Rio de Janeiro",
        updated_by="admin",
    )
    values.update(overrides)
    return SaveShipmentRequest(**values)


def test_save_geocodes_and_caps_progress(store: ShipmentStore) -> None:
    shipment, write = save_shipment(_request(city="Rio de Janeiro"), store, FakeGeocoder(PLACES))

    assert write is StoreWrite.REMOTE
    assert shipment.code == "RODOVAR1234"
    assert shipment.current_location.state == "SP"
    assert shipment.origin_coordinates == SAO_PAULO
    assert shipment.destination_coordinates == RIO
    assert shipment.progress == 99
    assert shipment.is_live
    assert shipment.last_updated_by == "admin"
    assert store.get("RODOVAR1234").progress == 99


def test_save_orders_stops_from_origin(store: ShipmentStore) -> None:
    stops = [
        StopInput(address="Av. 1", city="Resende"),
        StopInput(address="Av. 2", city="Jacarei"),
        StopInput(address="Av. 3", city="Taubate"),
    ]

    shipment, _ = save_shipment(_request(stops=stops), store, FakeGeocoder(PLACES))

    assert [s.city for s in shipment.stops] == ["Jacarei", "Taubate", "Resende"]
    assert [s.order for s in shipment.stops] == [1, 2, 3]
    assert all(s.id for s in shipment.stops)


def test_save_keeps_known_stop_coordinates(store: ShipmentStore) -> None:
    geocoder = FakeGeocoder(PLACES)
    first, _ = save_shipment(_request(stops=[StopInput(address="Av. 1", city="Taubate")]), store, geocoder)
    stop_id = first.stops[0].id
    geocoder.queries.clear()

    save_shipment(_request(stops=[StopInput(id=stop_id, address="Av. 1", city="Taubate")]), store, geocoder)

    assert "Taubate" not in geocoder.queries
    assert store.get("RODOVAR1234").version == 2


def test_save_rejects_delivered_status(store: ShipmentStore) -> None:
    with pytest.raises(ValueError):
        save_shipment(_request(status=TrackingStatus.DELIVERED), store, FakeGeocoder(PLACES))


def test_save_rejects_editing_delivered_shipment(store: ShipmentStore) -> None:
    store.upsert(make_shipment(status=TrackingStatus.DELIVERED, progress=100, is_live=False))

    with pytest.raises(ValueError):
        save_shipment(_request(), store, FakeGeocoder(PLACES))
    assert store.get("RODOVAR1234").status is TrackingStatus.DELIVERED


def test_save_assigns_driver_name(store: ShipmentStore, store_config, remote, cache) -> None:
    drivers = DriverStore(store_config, remote=remote, cache=cache)
    drivers.save(make_driver())

    shipment, _ = save_shipment(_request(driver_id="d1"), store, FakeGeocoder(PLACES), drivers)

    assert shipment.driver_name == "Joao Silva"
    with pytest.raises(DriverNotFound):
        save_shipment(_request(driver_id="ghost"), store, FakeGeocoder(PLACES), drivers)


def test_unknown_places_store_zero_progress(store: ShipmentStore) -> None:
    shipment, _ = save_shipment(_request(origin="Atlantis"), store, FakeGeocoder(PLACES))

    assert shipment.origin_coordinates == Coordinates(0.0, 0.0)
    assert shipment.progress == 0
