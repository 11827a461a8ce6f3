"""Driver console: live tracking sessions, position relay and delivery."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ...errors import DeliveryRejected, SessionCompleted, ShipmentNotFound
from ...models.domain import Coordinates
from ...schemas.shipments import FinalizeDeliveryRequest, ShipmentResponse
from ...schemas.tracking import PositionReport, SessionStatusModel, SyncRequest, SyncResponse
from ...services.delivery.finalizer import finalize_delivery
from ...services.tracking.session import TickOutcome, TrackingSession
from ..dependencies import Services, get_services
from .shipments import shipment_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracking", tags=["tracking"])


def _status(session: TrackingSession) -> SessionStatusModel:
    return SessionStatusModel(
        code=session.code,
        state=session.state.value,
        last_outcome=session.last_outcome.value if session.last_outcome else None,
    )


@router.post("/sync", response_model=SyncResponse, status_code=status.HTTP_200_OK)
async def sync(payload: SyncRequest | None = None, services: Services = Depends(get_services)) -> SyncResponse:
    """Report a connectivity change, or retry pending offline writes."""
    monitor = services.connectivity
    if payload is not None and payload.online is not None:
        synced = await monitor.set_online(payload.online)
    else:
        reachable = await asyncio.to_thread(services.shipments.ping)
        synced = await monitor.reconcile() if reachable else []
    return SyncResponse(online=monitor.online, synced=synced, pending=services.shipments.pending_codes())


@router.get("/current", status_code=status.HTTP_200_OK)
def current_code(services: Services = Depends(get_services)) -> dict:
    """Shipment code the driver console was last tracking on this server."""
    return {"code": services.sessions.markers.driver_code()}


@router.get("/{code}", response_model=SessionStatusModel, status_code=status.HTTP_200_OK)
def session_status(code: str, services: Services = Depends(get_services)) -> SessionStatusModel:
    return _status(services.sessions.session(code))


@router.post("/{code}/start", response_model=SessionStatusModel, status_code=status.HTTP_200_OK)
async def start(code: str, services: Services = Depends(get_services)) -> SessionStatusModel:
    try:
        session = await services.sessions.start(code)
    except ShipmentNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except SessionCompleted as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _status(session)


@router.post("/{code}/stop", response_model=SessionStatusModel, status_code=status.HTTP_200_OK)
async def stop(code: str, services: Services = Depends(get_services)) -> SessionStatusModel:
    return _status(await services.sessions.stop(code))


@router.post("/{code}/position", response_model=SessionStatusModel, status_code=status.HTTP_200_OK)
def report_position(code: str, payload: PositionReport, services: Services = Depends(get_services)) -> SessionStatusModel:
    """Relay the device's latest fix (or its error) to the code's session."""
    session = services.sessions.session(code)
    if payload.error is not None:
        session.position_source.report_error(payload.error)
    else:
        session.position_source.push(Coordinates(payload.lat, payload.lng))
    return _status(session)


@router.post("/{code}/tick", response_model=SessionStatusModel, status_code=status.HTTP_200_OK)
async def tick(code: str, services: Services = Depends(get_services)) -> SessionStatusModel:
    """Manual "update now": one tick outside the timer."""
    session = services.sessions.session(code)
    outcome = await session.tick()
    if outcome is TickOutcome.SKIPPED_NO_POSITION:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Position unavailable: enable GPS on the device and try again",
        )
    if outcome is TickOutcome.SKIPPED_NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Shipment {session.code} not found")
    if outcome is TickOutcome.SKIPPED_CONFLICT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Shipment {session.code} changed, retry")
    return _status(session)


@router.post("/{code}/finalize", response_model=ShipmentResponse, status_code=status.HTTP_200_OK)
async def finalize(
    code: str,
    payload: FinalizeDeliveryRequest,
    services: Services = Depends(get_services),
) -> ShipmentResponse:
    session = services.sessions.session(code)
    try:
        shipment = await asyncio.to_thread(services.shipments.get, code)
        result = await finalize_delivery(
            shipment,
            payload.receiver_name,
            payload.receiver_doc,
            payload.signature_image,
            payload.photo_image,
            store=services.shipments,
            position_source=session.position_source,
            session=session,
            refetch=True,
        )
    except ShipmentNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DeliveryRejected as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error finalizing delivery of {code}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to finalize delivery: {str(exc)}",
        ) from exc
    markers = services.sessions.markers
    if markers.driver_code() == session.code:
        markers.forget_driver_code()
    return shipment_response(result.shipment)
