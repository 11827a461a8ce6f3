"""Field ownership between the operator and the tracking device.

Both actors write the same shipment record without locking. The tracker only
owns the live position and its timestamp; every other field belongs to the
operator and is taken from the freshest fetched snapshot.
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Sequence

from ...models.domain import Coordinates, Shipment

TRACKER_OWNED_FIELDS: tuple[str, ...] = ("current_location.coordinates", "last_update")


def _resolve(obj: Any, path: str) -> Any:
    for part in path.split("."):
        obj = getattr(obj, part)
    return obj


def merge_snapshots(
    operator: Shipment,
    tracker: Shipment,
    owned: Sequence[str] = TRACKER_OWNED_FIELDS,
) -> Shipment:
    """Copy of ``operator`` with the ``owned`` dotted fields taken from ``tracker``.

    Neither input is modified.

    Raises:
        ValueError: an owned path does not name a shipment field.
    """
    if operator.code != tracker.code:
        raise ValueError(f"Cannot merge snapshots of {operator.code} and {tracker.code}")
    merged = copy.deepcopy(operator)
    for path in owned:
        parent_path, _, field_name = path.rpartition(".")
        try:
            value = _resolve(tracker, path)
            parent = _resolve(merged, parent_path) if parent_path else merged
            getattr(parent, field_name)
        except AttributeError as e:
            raise ValueError(f"Unknown shipment field '{path}'") from e
        setattr(parent, field_name, copy.deepcopy(value))
    return merged


def apply_position(fetched: Shipment, position: Coordinates, at: datetime) -> Shipment:
    """Splice a device fix into the latest fetched snapshot."""
    tracker = copy.deepcopy(fetched)
    tracker.current_location.coordinates = position
    tracker.last_update = at
    return merge_snapshots(fetched, tracker)
