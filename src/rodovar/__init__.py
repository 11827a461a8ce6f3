"""Shipment tracking core: route ordering, progress, live tracking and proof of delivery."""

__version__ = "1.0.0"
