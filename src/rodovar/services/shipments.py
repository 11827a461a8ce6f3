"""Operator-side create/edit of shipments."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from ..errors import DriverNotFound, ShipmentNotFound
from ..models.domain import CurrentLocation, RouteStop, Shipment, TrackingStatus
from ..persistence.drivers import DriverStore
from ..persistence.shipments import ShipmentStore, StoreWrite
from ..schemas.shipments import SaveShipmentRequest
from .geocoding import NominatimClient
from .progress import OPEN_PROGRESS_CAP, calculate_progress
from .routing.optimizer import optimize_route, route_length_km

logger = logging.getLogger(__name__)


def _existing(store: ShipmentStore, code: str) -> Shipment | None:
    try:
        return store.get(code)
    except ShipmentNotFound:
        return None


def _build_stops(request: SaveShipmentRequest, previous: Shipment | None, geocoder: NominatimClient) -> list[RouteStop]:
    known = {stop.id: stop for stop in previous.stops} if previous else {}
    stops: list[RouteStop] = []
    for position, stop_input in enumerate(request.stops, start=1):
        stop_id = stop_input.id or uuid.uuid4().hex
        earlier = known.get(stop_id)
        if earlier and earlier.address == stop_input.address and earlier.city == stop_input.city:
            coordinates = earlier.coordinates
        else:
            coordinates = geocoder.coordinates_for_location(stop_input.city, stop_input.address)
        stops.append(
            RouteStop(
                id=stop_id,
                address=stop_input.address,
                city=stop_input.city,
                coordinates=coordinates,
                completed=stop_input.completed,
                order=position,
            )
        )
    return stops


def save_shipment(
    request: SaveShipmentRequest,
    store: ShipmentStore,
    geocoder: NominatimClient,
    drivers: DriverStore | None = None,
) -> tuple[Shipment, StoreWrite]:
    """Geocode, optimize and persist an operator's shipment form.

    Intermediate stops are reordered nearest-first from the origin. A shipment
    saved here is never DELIVERED: that status, its proof and 100% progress
    are set only when the driver finalizes the delivery.

    Raises:
        ValueError: the request asks for DELIVERED or changes a delivered shipment.
        DriverNotFound: ``driver_id`` does not match a known driver.
    """
    if request.status is TrackingStatus.DELIVERED:
        raise ValueError("Only a proof of delivery can mark a shipment as delivered")

    previous = _existing(store, request.code)
    if previous is not None and previous.is_delivered:
        raise ValueError(f"Shipment {request.code} is already delivered and can no longer be edited")

    current_coords = geocoder.coordinates_for_city(request.city, request.state)
    origin_coords = geocoder.coordinates_for_location(request.origin)
    destination_coords = geocoder.coordinates_for_location(request.destination, request.destination_address)

    stops = _build_stops(request, previous, geocoder)
    if stops:
        stops = optimize_route(origin_coords, stops)
        logger.info(
            f"Optimized {len(stops)} stop(s) for {request.code}: "
            f"{route_length_km(origin_coords, stops):.1f} km through stops"
        )

    driver_name = None
    if request.driver_id:
        if drivers is None:
            raise DriverNotFound(request.driver_id)
        driver_name = drivers.get(request.driver_id).name

    progress = min(OPEN_PROGRESS_CAP, calculate_progress(origin_coords, destination_coords, current_coords))
    shipment = Shipment(
        code=request.code,
        status=request.status,
        current_location=CurrentLocation(
            city=request.city,
            state=request.state,
            coordinates=current_coords,
            address=request.address,
        ),
        origin=request.origin,
        destination=request.destination,
        destination_coordinates=destination_coords,
        stops=stops,
        progress=progress,
        is_live=True,
        last_update=datetime.now(timezone.utc),
        company=request.company.strip().upper(),
        origin_coordinates=origin_coords,
        destination_address=request.destination_address,
        estimated_delivery=request.estimated_delivery,
        message=request.message,
        notes=request.notes,
        driver_id=request.driver_id,
        driver_name=driver_name,
        last_updated_by=request.updated_by,
        version=previous.version if previous else 0,
    )
    write = store.upsert(shipment)
    logger.info(f"Shipment {shipment.code} saved by {request.updated_by or 'operator'} ({write.value})")
    return shipment, write
