"""Repository layer for database CRUD operations."""

from .message_repository import MessageRepository
from .shipment_repository import ShipmentRepository
from .tracking_event_repository import TrackingEventRepository
from .vehicle_tracking_repository import VehicleTrackingRepository

__all__ = [
    "MessageRepository",
    "ShipmentRepository",
    "TrackingEventRepository",
    "VehicleTrackingRepository",
]
