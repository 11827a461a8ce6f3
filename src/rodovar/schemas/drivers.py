"""Driver record and API schemas."""

from __future__ import annotations

from typing import Any, List, Literal, Optional

from pydantic import Field

from ..models.domain import Driver
from .shipments import RecordModel


class DriverRecord(RecordModel):
    id: str
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None
    current_mileage: Optional[int] = Field(default=None, ge=0)
    next_maintenance_mileage: Optional[int] = Field(default=None, ge=0)

    @classmethod
    def from_domain(cls, driver: Driver) -> "DriverRecord":
        return cls(
            id=driver.id,
            name=driver.name,
            phone=driver.phone,
            vehicle_plate=driver.vehicle_plate,
            current_mileage=driver.current_mileage,
            next_maintenance_mileage=driver.next_maintenance_mileage,
        )

    def to_domain(self) -> Driver:
        return Driver(
            id=self.id,
            name=self.name,
            phone=self.phone,
            vehicle_plate=self.vehicle_plate,
            current_mileage=self.current_mileage,
            next_maintenance_mileage=self.next_maintenance_mileage,
        )


def driver_to_record(driver: Driver) -> dict[str, Any]:
    return DriverRecord.from_domain(driver).model_dump(mode="json", by_alias=True)


def driver_from_record(data: dict[str, Any]) -> Driver:
    return DriverRecord.model_validate(data).to_domain()


class MaintenanceAlertModel(RecordModel):
    driver_id: str
    vehicle: str
    level: Literal["WARNING", "URGENT"]
    remaining_km: int
    message: str


class MaintenanceAlertsResponse(RecordModel):
    alerts: List[MaintenanceAlertModel]


class DriverInput(RecordModel):
    """Create (no id) or update a driver."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None
    current_mileage: Optional[int] = Field(default=None, ge=0)
    next_maintenance_mileage: Optional[int] = Field(default=None, ge=0)
