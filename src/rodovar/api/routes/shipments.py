"""Shipment endpoints: public tracking view and operator management."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from ...errors import DriverNotFound, ShipmentNotFound
from ...models.domain import Shipment
from ...schemas.shipments import (
    SaveShipmentRequest,
    ShipmentCodeResponse,
    ShipmentRecord,
    ShipmentResponse,
)
from ...services.progress import TrackingView, describe_progress
from ...services.shipments import save_shipment
from ...services.tracking.poller import ViewerPoller
from ..dependencies import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipments", tags=["shipments"])


def shipment_response(shipment: Shipment) -> ShipmentResponse:
    return ShipmentResponse.from_domain(shipment, describe_progress(shipment))


@router.get("", response_model=List[ShipmentRecord], status_code=status.HTTP_200_OK)
def list_shipments(services: Services = Depends(get_services)) -> List[ShipmentRecord]:
    shipments = services.shipments.list_all()
    return [ShipmentRecord.from_domain(shipment) for _, shipment in sorted(shipments.items())]


@router.post("", response_model=ShipmentResponse, status_code=status.HTTP_200_OK)
def save(payload: SaveShipmentRequest, services: Services = Depends(get_services)) -> ShipmentResponse:
    """Create or edit a shipment from the operator form.

    Stops are geocoded and reordered nearest-first from the origin.
    """
    try:
        shipment, _ = save_shipment(payload, services.shipments, services.geocoder, services.drivers)
        return shipment_response(shipment)
    except DriverNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error saving shipment {payload.code}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to save shipment: {str(exc)}",
        ) from exc


@router.post("/codes", response_model=ShipmentCodeResponse, status_code=status.HTTP_200_OK)
def new_code(
    company: str = Query(default="RODOVAR", description="Company prefix of the new code"),
    services: Services = Depends(get_services),
) -> ShipmentCodeResponse:
    try:
        return ShipmentCodeResponse(code=services.shipments.generate_unique_code(company))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/{code}", response_model=ShipmentResponse, status_code=status.HTTP_200_OK)
def get_shipment(code: str, services: Services = Depends(get_services)) -> ShipmentResponse:
    """Public tracking view of one shipment."""
    try:
        return shipment_response(services.shipments.get(code))
    except ShipmentNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{code}", status_code=status.HTTP_200_OK)
def delete_shipment(code: str, services: Services = Depends(get_services)) -> dict:
    write = services.shipments.delete(code)
    return {"code": code.strip().upper(), "deleted": True, "write": write.value}


@router.get("/{code}/stream")
async def stream_shipment(code: str, services: Services = Depends(get_services)) -> StreamingResponse:
    """Server-sent events with a fresh tracking view every few seconds.

    The stream ends once the shipment is delivered or no longer live.
    """
    try:
        first = await asyncio.to_thread(services.shipments.get, code)
    except ShipmentNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    updates: asyncio.Queue[ShipmentResponse | None] = asyncio.Queue()

    def publish(shipment: Shipment, view: TrackingView) -> None:
        updates.put_nowait(ShipmentResponse.from_domain(shipment, view))

    async def events() -> AsyncIterator[str]:
        poller = ViewerPoller(code, services.shipments, publish)
        publish(first, describe_progress(first))
        if first.is_live and not first.is_delivered:
            poller.start()
        try:
            while True:
                try:
                    update = await asyncio.wait_for(updates.get(), poller.interval * 3)
                except asyncio.TimeoutError:
                    if not poller.running:
                        break
                    continue
                yield f"data: {json.dumps(update.model_dump(mode='json', by_alias=True))}\n\n"
                if update.tracking.is_completed or not update.shipment.is_live:
                    break
        finally:
            await poller.stop()

    return StreamingResponse(events(), media_type="text/event-stream")
