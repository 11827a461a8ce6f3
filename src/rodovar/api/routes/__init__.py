"""Route group exports."""

from . import drivers, health, shipments, tracking

__all__ = ["health", "shipments", "drivers", "tracking"]
