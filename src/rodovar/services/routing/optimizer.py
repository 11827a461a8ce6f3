"""Nearest-neighbour ordering of intermediate route stops.

Greedy heuristic: starting at the origin, always drive to the closest stop not
yet visited. Runs in O(n²), which is fine for the handful of stops a shipment
carries. The result is not guaranteed to be the shortest tour.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from ...models.domain import Coordinates, RouteStop
from ..geospatial import distance_km

logger = logging.getLogger(__name__)


def optimize_route(origin: Coordinates, stops: Sequence[RouteStop]) -> list[RouteStop]:
    """Order stops by repeatedly visiting the nearest remaining one.

    Ties keep input order: a later stop only wins with a strictly shorter
    distance. Returned stops are copies numbered ``order = 1..N``; the input
    sequence is left untouched.

    Args:
        origin: Where the vehicle starts.
        stops: Stops in the order the operator entered them.

    Returns:
        New list of stops in visiting order.
    """
    if not stops:
        return list(stops)
    if len(stops) == 1:
        return [replace(stops[0], order=1)]

    remaining = list(stops)
    ordered: list[RouteStop] = []
    current = origin

    while remaining:
        nearest_idx = 0
        min_dist = float("inf")
        for idx, stop in enumerate(remaining):
            dist = distance_km(current, stop.coordinates)
            if dist < min_dist:
                min_dist = dist
                nearest_idx = idx
        next_stop = remaining.pop(nearest_idx)
        ordered.append(next_stop)
        current = next_stop.coordinates

    logger.debug(f"Ordered {len(ordered)} stops: {[stop.id for stop in ordered]}")
    return [replace(stop, order=position) for position, stop in enumerate(ordered, start=1)]


def route_length_km(origin: Coordinates, stops: Sequence[RouteStop]) -> float:
    """Total distance driving from origin through stops in the given order."""

    total = 0.0
    current = origin
    for stop in stops:
        total += distance_km(current, stop.coordinates)
        current = stop.coordinates
    return total
