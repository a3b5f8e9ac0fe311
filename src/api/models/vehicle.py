from pydantic import Field

from core.models import CamelModel


class VehicleUpdateRequest(CamelModel):
    """Manual override; omitted fields are left unchanged."""

    waybill_number: str = Field(min_length=1)
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    speed: float | None = Field(default=None, ge=0.0, le=120.0)
    is_paused: bool | None = None
