"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...db.supabase import StoreMode
from ..dependencies import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_geocoder_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.geocoding import check_health as geocoder_health_check
    return geocoder_health_check


@router.get("/health/geocoder", status_code=status.HTTP_200_OK)
def health_geocoder() -> dict:
    """Check geocoding service health."""
    try:
        geocoder_health_check = _get_geocoder_health_check()
        return {"service": "geocoder", "healthy": geocoder_health_check()}
    except Exception as e:
        return {"service": "geocoder", "healthy": False, "error": str(e)}


@router.get("/health/store", status_code=status.HTTP_200_OK)
def health_store(services: Services = Depends(get_services)) -> dict:
    """Store mode, connectivity and shipments still waiting to sync."""
    store = services.shipments
    pending = store.pending_codes()
    return {
        "mode": services.config.mode.value,
        "online": store.is_online,
        "pendingSync": pending,
        "message": (
            "Supabase not configured. Set RODOVAR_SUPABASE_URL and RODOVAR_SUPABASE_KEY environment variables."
            if services.config.mode is StoreMode.LOCAL_ONLY
            else f"{len(pending)} shipment(s) waiting to sync" if pending else "In sync"
        ),
    }
