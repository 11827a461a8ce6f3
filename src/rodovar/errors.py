"""Error kinds raised by the tracking core.

None of these is fatal to the process: ticks and polls retry on their next run,
geocoding degrades to a sentinel coordinate, and everything else is surfaced to
the caller (and mapped to an HTTP status by the API routes).
"""

from __future__ import annotations


class TrackingError(Exception):
    """Base class for tracking core errors."""


class PositionUnavailable(TrackingError):
    """The device could not produce a position fix."""

    REASONS = ("denied", "unavailable", "timeout")

    def __init__(self, reason: str = "unavailable", detail: str | None = None) -> None:
        if reason not in self.REASONS:
            reason = "unavailable"
        self.reason = reason
        message = f"Position unavailable ({reason})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class GeocodeMiss(TrackingError):
    """A geocoding lookup returned nothing usable."""

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"No geocoding result for '{query}'")


class ShipmentNotFound(TrackingError, LookupError):
    """No shipment exists for the requested code."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Shipment {code} not found")


class DriverNotFound(TrackingError, LookupError):
    def __init__(self, driver_id: str) -> None:
        self.driver_id = driver_id
        super().__init__(f"Driver {driver_id} not found")


class DuplicateName(TrackingError, ValueError):
    """A new driver would share its name with an existing one."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A driver named '{name}' already exists")


class StoreUnreachable(TrackingError):
    """The remote store is unconfigured or could not be reached."""


class ConflictError(TrackingError):
    """A conditional write found a different version than expected."""

    def __init__(self, key: str, expected_version: int) -> None:
        self.key = key
        self.expected_version = expected_version
        super().__init__(f"Record {key} changed since version {expected_version}")


class DeliveryRejected(TrackingError, ValueError):
    """Proof of delivery could not be attached; the shipment is unchanged."""


class SessionCompleted(TrackingError):
    """The shipment is delivered; its tracking session cannot be re-armed."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Shipment {code} is delivered; tracking is closed")
