"""Persisted record and API schemas for shipments."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..models.domain import (
    Coordinates,
    CurrentLocation,
    ProofOfDelivery,
    RouteStop,
    Shipment,
    TrackingStatus,
)
from ..services.progress import TrackingView

# Older records carry "HH:MM - DD/MM" instead of an ISO timestamp.
_LEGACY_UPDATE_FORMAT = re.compile(r"^(\d{2}):(\d{2}) - (\d{2})/(\d{2})$")


class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CoordinatesModel(RecordModel):
    lat: float
    lng: float

    @classmethod
    def from_domain(cls, point: Coordinates) -> "CoordinatesModel":
        return cls(lat=point.lat, lng=point.lng)

    def to_domain(self) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)


class RouteStopModel(RecordModel):
    id: str
    address: str
    city: str
    coordinates: CoordinatesModel
    completed: bool = False
    order: int = 0


class CurrentLocationModel(RecordModel):
    city: str = ""
    state: str = ""
    address: Optional[str] = None
    coordinates: CoordinatesModel = Field(default_factory=lambda: CoordinatesModel(lat=0.0, lng=0.0))


class ProofOfDeliveryModel(RecordModel):
    receiver_name: str
    receiver_doc: str
    signature_image: str = Field(alias="signatureBase64")
    photo_image: str = Field(default="", alias="photoBase64")
    timestamp: datetime
    location: CoordinatesModel


class ShipmentRecord(RecordModel):
    """One JSON object per shipment, keyed by `code`."""

    code: str
    company: str = "RODOVAR"
    status: TrackingStatus = TrackingStatus.PENDING
    is_live: bool = False
    current_location: CurrentLocationModel = Field(default_factory=CurrentLocationModel)
    origin: str = ""
    origin_coordinates: Optional[CoordinatesModel] = None
    destination: str = ""
    destination_address: Optional[str] = None
    destination_coordinates: Optional[CoordinatesModel] = None
    stops: List[RouteStopModel] = Field(default_factory=list)
    last_update: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_updated_by: Optional[str] = None
    estimated_delivery: Optional[str] = None
    message: str = ""
    notes: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100)
    driver_id: Optional[str] = None
    driver_name: Optional[str] = None
    proof: Optional[ProofOfDeliveryModel] = None
    version: int = 0

    @field_validator("last_update", mode="before")
    @classmethod
    def _parse_legacy_update(cls, value: Any) -> Any:
        if isinstance(value, str):
            match = _LEGACY_UPDATE_FORMAT.match(value.strip())
            if match:
                hour, minute, day, month = (int(part) for part in match.groups())
                year = datetime.now(timezone.utc).year
                return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
        return value

    @classmethod
    def from_domain(cls, shipment: Shipment) -> "ShipmentRecord":
        location = shipment.current_location
        proof = shipment.proof
        return cls(
            code=shipment.code,
            company=shipment.company,
            status=shipment.status,
            is_live=shipment.is_live,
            current_location=CurrentLocationModel(
                city=location.city,
                state=location.state,
                address=location.address,
                coordinates=CoordinatesModel.from_domain(location.coordinates),
            ),
            origin=shipment.origin,
            origin_coordinates=CoordinatesModel.from_domain(shipment.origin_coordinates),
            destination=shipment.destination,
            destination_address=shipment.destination_address,
            destination_coordinates=CoordinatesModel.from_domain(shipment.destination_coordinates),
            stops=[
                RouteStopModel(
                    id=stop.id,
                    address=stop.address,
                    city=stop.city,
                    coordinates=CoordinatesModel.from_domain(stop.coordinates),
                    completed=stop.completed,
                    order=stop.order,
                )
                for stop in shipment.stops
            ],
            last_update=shipment.last_update,
            last_updated_by=shipment.last_updated_by,
            estimated_delivery=shipment.estimated_delivery,
            message=shipment.message,
            notes=shipment.notes,
            progress=shipment.progress,
            driver_id=shipment.driver_id,
            driver_name=shipment.driver_name,
            proof=None
            if proof is None
            else ProofOfDeliveryModel(
                receiver_name=proof.receiver_name,
                receiver_doc=proof.receiver_doc,
                signature_image=proof.signature_image,
                photo_image=proof.photo_image,
                timestamp=proof.timestamp,
                location=CoordinatesModel.from_domain(proof.location),
            ),
            version=shipment.version,
        )

    def to_domain(self) -> Shipment:
        unknown = Coordinates(0.0, 0.0)
        return Shipment(
            code=self.code,
            status=self.status,
            current_location=CurrentLocation(
                city=self.current_location.city,
                state=self.current_location.state,
                address=self.current_location.address,
                coordinates=self.current_location.coordinates.to_domain(),
            ),
            origin=self.origin,
            destination=self.destination,
            destination_coordinates=self.destination_coordinates.to_domain() if self.destination_coordinates else unknown,
            stops=[
                RouteStop(
                    id=stop.id,
                    address=stop.address,
                    city=stop.city,
                    coordinates=stop.coordinates.to_domain(),
                    completed=stop.completed,
                    order=stop.order,
                )
                for stop in self.stops
            ],
            progress=self.progress,
            is_live=self.is_live,
            last_update=self.last_update,
            proof=None
            if self.proof is None
            else ProofOfDelivery(
                receiver_name=self.proof.receiver_name,
                receiver_doc=self.proof.receiver_doc,
                signature_image=self.proof.signature_image,
                photo_image=self.proof.photo_image,
                timestamp=self.proof.timestamp,
                location=self.proof.location.to_domain(),
            ),
            company=self.company,
            origin_coordinates=self.origin_coordinates.to_domain() if self.origin_coordinates else unknown,
            destination_address=self.destination_address,
            estimated_delivery=self.estimated_delivery,
            message=self.message,
            notes=self.notes,
            driver_id=self.driver_id,
            driver_name=self.driver_name,
            last_updated_by=self.last_updated_by,
            version=self.version,
        )


def shipment_to_record(shipment: Shipment) -> dict[str, Any]:
    return ShipmentRecord.from_domain(shipment).model_dump(mode="json", by_alias=True)


def shipment_from_record(data: dict[str, Any]) -> Shipment:
    return ShipmentRecord.model_validate(data).to_domain()


class StopInput(RecordModel):
    address: str
    city: str
    id: Optional[str] = None
    completed: bool = False


class SaveShipmentRequest(RecordModel):
    """Operator form for creating or editing a shipment."""

    code: str = Field(..., min_length=1)
    company: str = "RODOVAR"
    status: TrackingStatus = TrackingStatus.IN_TRANSIT
    city: str = Field(..., min_length=1, description="Current city of the load.")
    state: str = Field(..., min_length=1)
    address: Optional[str] = None
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    destination_address: Optional[str] = None
    stops: List[StopInput] = Field(default_factory=list)
    estimated_delivery: Optional[str] = None
    message: str = "Load travelling to destination."
    notes: Optional[str] = None
    driver_id: Optional[str] = None
    updated_by: Optional[str] = Field(default=None, description="Operator saving the shipment.")

    @field_validator("code", "state", mode="after")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class TrackingViewModel(RecordModel):
    progress: int
    remaining_km: Optional[int]
    can_finalize: bool
    is_completed: bool


class ShipmentResponse(RecordModel):
    shipment: ShipmentRecord
    status_label: str
    tracking: TrackingViewModel

    @classmethod
    def from_domain(cls, shipment: Shipment, view: TrackingView) -> "ShipmentResponse":
        return cls(
            shipment=ShipmentRecord.from_domain(shipment),
            status_label=shipment.status.label,
            tracking=TrackingViewModel(
                progress=view.progress,
                remaining_km=view.remaining_km,
                can_finalize=view.can_finalize,
                is_completed=view.is_completed,
            ),
        )


class ShipmentCodeResponse(BaseModel):
    code: str


class FinalizeDeliveryRequest(RecordModel):
    """Proof of delivery captured on the driver's device."""

    receiver_name: str = ""
    receiver_doc: str = ""
    signature_image: str = Field(default="", alias="signatureBase64")
    photo_image: str = Field(default="", alias="photoBase64")
