"""Geospatial helper functions."""

from __future__ import annotations

import math

from ..models.domain import Coordinates

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in kilometres between two points."""

    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def is_unknown(point: Coordinates | None) -> bool:
    """True for a missing point or the (0, 0) sentinel."""

    return point is None or point.is_unknown
