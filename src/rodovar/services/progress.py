"""Trip progress and the proximity gate for finishing a delivery."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..config import settings
from ..models.domain import Coordinates, Shipment
from .geospatial import distance_km, is_unknown

# Below this origin/destination separation the trip counts as already done.
DEGENERATE_ROUTE_KM = 0.1
OPEN_PROGRESS_CAP = 99


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_progress(origin: Coordinates, destination: Coordinates, current: Coordinates) -> int:
    """Percentage of the origin→destination distance already covered (0..100).

    Unknown origin or destination gives 0; a degenerate route gives 100. A
    position past the destination or behind the origin is clamped.
    """
    if is_unknown(origin) or is_unknown(destination):
        return 0
    total = distance_km(origin, destination)
    if total <= DEGENERATE_ROUTE_KM:
        return 100
    remaining = distance_km(current, destination)
    percentage = (1 - remaining / total) * 100
    return max(0, min(100, _round_half_up(percentage)))


def remaining_distance_km(current: Coordinates, destination: Coordinates | None) -> Optional[float]:
    if is_unknown(destination):
        return None
    return distance_km(current, destination)


def can_finalize(
    current: Coordinates,
    destination: Coordinates | None,
    threshold_km: float | None = None,
) -> bool:
    """Whether the driver is close enough to be offered "finalize delivery"."""

    threshold = settings.proximity_threshold_km if threshold_km is None else threshold_km
    remaining = remaining_distance_km(current, destination)
    return remaining is not None and remaining <= threshold


@dataclass(slots=True)
class TrackingView:
    progress: int
    remaining_km: Optional[int]
    can_finalize: bool
    is_completed: bool


def describe_progress(shipment: Shipment, threshold_km: float | None = None) -> TrackingView:
    """Display values for the tracking page and the driver console."""

    current = shipment.current_location.coordinates
    destination = shipment.destination_coordinates
    if shipment.is_delivered:
        return TrackingView(progress=100, remaining_km=0, can_finalize=False, is_completed=True)

    remaining = remaining_distance_km(current, destination)
    return TrackingView(
        # 100% is reserved for shipments with a proof of delivery
        progress=min(OPEN_PROGRESS_CAP, calculate_progress(shipment.origin_coordinates, destination, current)),
        remaining_km=None if remaining is None else _round_half_up(remaining),
        can_finalize=can_finalize(current, destination, threshold_km),
        is_completed=False,
    )
