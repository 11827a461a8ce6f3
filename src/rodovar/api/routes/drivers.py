"""Driver and fleet maintenance endpoints."""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import DuplicateName
from ...models.domain import Driver
from ...schemas.drivers import DriverInput, DriverRecord, MaintenanceAlertModel, MaintenanceAlertsResponse
from ...schemas.shipments import ShipmentResponse
from ..dependencies import Services, get_services
from .shipments import shipment_response

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.get("", response_model=List[DriverRecord], status_code=status.HTTP_200_OK)
def list_drivers(services: Services = Depends(get_services)) -> List[DriverRecord]:
    return [DriverRecord.from_domain(driver) for driver in services.drivers.list_all()]


@router.post("", response_model=DriverRecord, status_code=status.HTTP_200_OK)
def save_driver(payload: DriverInput, services: Services = Depends(get_services)) -> DriverRecord:
    driver = Driver(
        id=payload.id or uuid.uuid4().hex,
        name=payload.name.strip(),
        phone=payload.phone,
        vehicle_plate=payload.vehicle_plate,
        current_mileage=payload.current_mileage,
        next_maintenance_mileage=payload.next_maintenance_mileage,
    )
    try:
        return DriverRecord.from_domain(services.drivers.save(driver))
    except DuplicateName as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/maintenance-alerts", response_model=MaintenanceAlertsResponse, status_code=status.HTTP_200_OK)
def maintenance_alerts(
    warning_km: int | None = Query(default=None, ge=0, description="Warn this many km before the due mileage"),
    services: Services = Depends(get_services),
) -> MaintenanceAlertsResponse:
    alerts = services.drivers.maintenance_alerts(warning_km)
    return MaintenanceAlertsResponse(
        alerts=[
            MaintenanceAlertModel(
                driver_id=alert.driver_id,
                vehicle=alert.vehicle,
                level=alert.level,
                remaining_km=alert.remaining_km,
                message=alert.message,
            )
            for alert in alerts
        ]
    )


@router.get("/active-shipment", response_model=ShipmentResponse, status_code=status.HTTP_200_OK)
def active_shipment(
    phone: str = Query(..., min_length=1, description="Driver phone, any formatting"),
    services: Services = Depends(get_services),
) -> ShipmentResponse:
    """Undelivered shipment assigned to the driver with this phone number."""
    shipment = services.shipments.find_active_by_driver_phone(phone, services.drivers.list_all())
    if shipment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active shipment for this phone")
    return shipment_response(shipment)


@router.delete("/{driver_id}", status_code=status.HTTP_200_OK)
def delete_driver(driver_id: str, services: Services = Depends(get_services)) -> dict:
    services.drivers.delete(driver_id)
    return {"id": driver_id, "deleted": True}
