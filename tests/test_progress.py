import pytest

from rodovar.models.domain import Coordinates, CurrentLocation, TrackingStatus
from rodovar.services import progress
from rodovar.services.progress import calculate_progress, can_finalize, describe_progress, remaining_distance_km

from conftest import RIO, SAO_PAULO, make_shipment

UNKNOWN = Coordinates(0.0, 0.0)
START = Coordinates(0.0, 10.0)
END = Coordinates(0.0, 12.0)


def test_unknown_origin_or_destination_gives_zero() -> None:
    assert calculate_progress(UNKNOWN, RIO, SAO_PAULO) == 0
    assert calculate_progress(SAO_PAULO, UNKNOWN, RIO) == 0


def test_degenerate_route_is_complete() -> None:
    assert calculate_progress(RIO, RIO, SAO_PAULO) == 100
    assert calculate_progress(RIO, Coordinates(RIO.lat + 0.0005, RIO.lng), SAO_PAULO) == 100


def test_progress_along_route() -> None:
    assert calculate_progress(START, END, START) == 0
    assert calculate_progress(START, END, END) == 100
    assert calculate_progress(START, END, Coordinates(0.0, 11.0)) == 50


def test_progress_clamped_behind_origin() -> None:
    assert calculate_progress(START, END, Coordinates(0.0, 5.0)) == 0


def test_progress_rounds_half_up(monkeypatch: pytest.MonkeyPatch) -> None:
    # total 8 km, 7 km left: exactly 12.5%
    monkeypatch.setattr(progress, "distance_km", lambda a, b: 8.0 if a == START else 7.0)

    assert calculate_progress(START, END, Coordinates(0.0, 10.5)) == 13


@pytest.mark.parametrize(
    ("remaining", "expected"),
    [(1.99, True), (2.0, True), (2.01, False), (250.0, False)],
)
def test_proximity_gate_is_inclusive(monkeypatch: pytest.MonkeyPatch, remaining: float, expected: bool) -> None:
    monkeypatch.setattr(progress, "distance_km", lambda a, b: remaining)

    assert can_finalize(START, END, threshold_km=2.0) is expected


def test_proximity_gate_with_real_distances() -> None:
    near = Coordinates(RIO.lat + 0.0135, RIO.lng)
    far = Coordinates(RIO.lat + 0.03, RIO.lng)

    assert can_finalize(near, RIO)
    assert not can_finalize(far, RIO)


def test_unknown_destination_never_finalizes() -> None:
    assert remaining_distance_km(RIO, UNKNOWN) is None
    assert not can_finalize(RIO, UNKNOWN)


def test_describe_open_shipment_caps_progress() -> None:
    shipment = make_shipment(current_location=CurrentLocation(city="Rio", state="RJ", coordinates=RIO))

    view = describe_progress(shipment)

    assert view.progress == 99
    assert view.remaining_km == 0
    assert view.can_finalize
    assert not view.is_completed


def test_describe_delivered_shipment() -> None:
    shipment = make_shipment(status=TrackingStatus.DELIVERED, progress=100, is_live=False)

    view = describe_progress(shipment)

    assert (view.progress, view.remaining_km, view.can_finalize, view.is_completed) == (100, 0, False, True)


def test_origin_at_sentinel_wins_over_geometry() -> None:
    # (0, 0) means "not geocoded", even on a real equatorial leg
    assert calculate_progress(UNKNOWN, Coordinates(0.0, 1.0), Coordinates(0.0, 0.5)) == 0
