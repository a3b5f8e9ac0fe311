"""Database persistence module."""

from .database import init_database
from .schema import Message, Shipment, TrackingEvent, VehicleTracking
from .transaction import transaction

__all__ = [
    "init_database",
    "Message",
    "Shipment",
    "TrackingEvent",
    "VehicleTracking",
    "transaction",
]
