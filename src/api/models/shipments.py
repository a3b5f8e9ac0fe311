from datetime import datetime

from pydantic import ConfigDict, Field

from core.models import CamelModel


class CreateShipmentRequest(CamelModel):
    sender_name: str = Field(min_length=1)
    sender_phone: str = Field(min_length=1)
    sender_address: str | None = None
    receiver_name: str = Field(min_length=1)
    receiver_phone: str = Field(min_length=1)
    receiver_address: str | None = None
    origin: str = Field(min_length=1)
    destination: str = Field(min_length=1)
    weight: float | None = Field(default=None, ge=0)
    price: float | None = Field(default=None, ge=0)


class TrackingEventResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: str
    location: str
    remarks: str | None = None
    timestamp: datetime


class ShipmentResponse(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    waybill_number: str
    sender_name: str
    sender_phone: str
    sender_address: str | None = None
    receiver_name: str
    receiver_phone: str
    receiver_address: str | None = None
    origin: str
    destination: str
    weight: float | None = None
    price: float | None = None
    current_status: str
    created_at: datetime
    updated_at: datetime


class ShipmentDetailResponse(ShipmentResponse):
    receiver_signature: str | None = None
    events: list[TrackingEventResponse] = []
