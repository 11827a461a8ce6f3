"""Process-wide services shared by the API routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from ..config import Settings, settings as default_settings
from ..db.supabase import StoreConfig, open_remote_store
from ..persistence.cache import LocalCache, SessionMarkers
from ..persistence.drivers import DriverStore
from ..persistence.shipments import ShipmentStore
from ..services.geocoding import NominatimClient
from ..services.tracking.connectivity import ConnectivityMonitor
from ..services.tracking.session import SessionManager


@dataclass
class Services:
    config: StoreConfig
    shipments: ShipmentStore
    drivers: DriverStore
    geocoder: NominatimClient
    sessions: SessionManager
    connectivity: ConnectivityMonitor


def build_services(settings: Settings | None = None) -> Services:
    """Wire stores and tracking services from one resolved configuration."""
    settings = settings or default_settings
    config = StoreConfig.from_settings(settings)
    remote = open_remote_store(config)
    cache = LocalCache(config.local_root)
    shipments = ShipmentStore(config, remote=remote, cache=cache)
    return Services(
        config=config,
        shipments=shipments,
        drivers=DriverStore(config, remote=remote, cache=cache),
        geocoder=NominatimClient(),
        sessions=SessionManager(
            shipments,
            SessionMarkers(cache),
            interval=settings.tracking_interval_seconds,
            io_timeout=settings.io_timeout_seconds,
            compare_and_swap=settings.tracking_compare_and_swap,
        ),
        connectivity=ConnectivityMonitor(shipments, settings.connectivity_probe_seconds),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
