from core.models import CamelModel


class TrackingUpdateRequest(CamelModel):
    waybill_number: str = ""
    status: str = ""
    location: str = ""
    remarks: str | None = None
    signature: str | None = None
