from core.models import CamelModel


class SendMessageRequest(CamelModel):
    sender_id: str = ""
    receiver_id: str = ""
    content: str | None = None
    attachment: str | None = None
    attachment_type: str | None = None
