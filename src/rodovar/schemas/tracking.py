"""Schemas for the driver's tracking console."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field, model_validator

from .shipments import RecordModel


class PositionReport(RecordModel):
    """A GPS fix from the driver's device, or the reason it could not get one."""

    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    error: Optional[Literal["denied", "unavailable", "timeout"]] = None

    @model_validator(mode="after")
    def _fix_or_error(self) -> "PositionReport":
        if self.error is None and (self.lat is None or self.lng is None):
            raise ValueError("Send lat and lng, or an error reason")
        return self


class SessionStatusModel(RecordModel):
    code: str
    state: str
    last_outcome: Optional[str] = None


class SyncRequest(RecordModel):
    online: Optional[bool] = Field(default=None, description="Connectivity event from the device; omitted means retry now.")


class SyncResponse(RecordModel):
    online: bool
    synced: List[str]
    pending: List[str]
