"""Pydantic models for API requests and responses."""

from api.models.chat import SendMessageRequest
from api.models.shipments import (
    CreateShipmentRequest,
    ShipmentDetailResponse,
    ShipmentResponse,
    TrackingEventResponse,
)
from api.models.tracking import TrackingUpdateRequest
from api.models.vehicle import VehicleUpdateRequest

__all__ = [
    # Chat models
    "SendMessageRequest",
    # Shipment models
    "CreateShipmentRequest",
    "ShipmentDetailResponse",
    "ShipmentResponse",
    "TrackingEventResponse",
    # Tracking models
    "TrackingUpdateRequest",
    # Vehicle models
    "VehicleUpdateRequest",
]
