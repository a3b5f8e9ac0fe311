"""Topic keys and event payload schemas for live notifications."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from core.models import CamelModel

USER_TOPIC_PREFIX = "user:"
WAYBILL_TOPIC_PREFIX = "waybill:"


def user_topic(user_id: str) -> str:
    """Topic key for a user's chat inbox; empty for an empty id."""
    return f"{USER_TOPIC_PREFIX}{user_id}" if user_id else ""


def waybill_topic(waybill_number: str) -> str:
    """Topic key for a shipment's tracking feed; empty for an empty waybill."""
    return f"{WAYBILL_TOPIC_PREFIX}{waybill_number}" if waybill_number else ""


class EventPayload(CamelModel):
    """Immutable event, serialized once by the producer."""

    model_config = ConfigDict(frozen=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class MessageEvent(EventPayload):
    """Chat message delivered to the receiver's inbox."""

    type: Literal["message"] = "message"
    id: int
    sender_id: str
    receiver_id: str
    content: str | None = None
    attachment: str | None = None
    attachment_type: str | None = None
    created_at: datetime


class TrackingStatusEvent(EventPayload):
    """Shipment status change recorded by staff or the simulation."""

    type: Literal["tracking_status"] = "tracking_status"
    waybill_number: str
    status: str
    location: str
    remarks: str | None = None
    timestamp: datetime


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float


class VehiclePositionEvent(EventPayload):
    """Simulated vehicle position for a shipment in transit."""

    type: Literal["vehicle_position"] = "vehicle_position"
    waybill_number: str
    tracking_id: int
    position: GeoPoint
    heading: float
    progress: float
    progress_percent: float
    speed: float
    is_active: bool
    is_city_zone: bool
    is_completed: bool = False
    timestamp: datetime


class StreamErrorEvent(EventPayload):
    """Error surfaced to stream clients as an ``event: error`` frame."""

    type: Literal["error"] = "error"
    status: int | None = None
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
