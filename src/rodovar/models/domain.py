"""Domain models for shipments, route stops and drivers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class TrackingStatus(str, Enum):
    PENDING = "PENDING"
    IN_TRANSIT = "IN_TRANSIT"
    STOPPED = "STOPPED"
    DELIVERED = "DELIVERED"
    DELAYED = "DELAYED"
    EXCEPTION = "EXCEPTION"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: dict[TrackingStatus, str] = {
    TrackingStatus.PENDING: "Awaiting pickup",
    TrackingStatus.IN_TRANSIT: "In transit",
    TrackingStatus.STOPPED: "Stopped / resting",
    TrackingStatus.DELIVERED: "Delivered",
    TrackingStatus.DELAYED: "Delayed",
    TrackingStatus.EXCEPTION: "Exception / held",
}


@dataclass(frozen=True, slots=True)
class Coordinates:
    """Latitude/longitude in degrees. (0, 0) means "unknown"."""

    lat: float
    lng: float

    @property
    def is_unknown(self) -> bool:
        return self.lat == 0 and self.lng == 0


UNKNOWN_COORDINATES = Coordinates(0.0, 0.0)


@dataclass(slots=True)
class RouteStop:
    """Intermediate stop of a shipment. `order` is assigned by the route optimizer."""

    id: str
    address: str
    city: str
    coordinates: Coordinates
    completed: bool = False
    order: int = 0


@dataclass(slots=True)
class CurrentLocation:
    city: str
    state: str
    coordinates: Coordinates = UNKNOWN_COORDINATES
    address: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ProofOfDelivery:
    """Receiver identity, signature, photo and the fix captured at hand-over."""

    receiver_name: str
    receiver_doc: str
    signature_image: str
    photo_image: str
    timestamp: datetime
    location: Coordinates


@dataclass(slots=True)
class Shipment:
    """A tracked load, keyed by its company-prefixed `code` (e.g. RODOVAR1234)."""

    code: str
    status: TrackingStatus
    current_location: CurrentLocation
    origin: str
    destination: str
    destination_coordinates: Coordinates = UNKNOWN_COORDINATES
    stops: List[RouteStop] = field(default_factory=list)
    progress: int = 0
    is_live: bool = True
    last_update: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    proof: Optional[ProofOfDelivery] = None
    company: str = "RODOVAR"
    origin_coordinates: Coordinates = UNKNOWN_COORDINATES
    destination_address: Optional[str] = None
    estimated_delivery: Optional[str] = None
    message: str = ""
    notes: Optional[str] = None
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    last_updated_by: Optional[str] = None
    version: int = 0

    @property
    def is_delivered(self) -> bool:
        return self.status is TrackingStatus.DELIVERED


@dataclass(slots=True)
class Driver:
    """Driver and vehicle maintenance data."""

    id: str
    name: str
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None
    current_mileage: Optional[int] = None
    next_maintenance_mileage: Optional[int] = None
