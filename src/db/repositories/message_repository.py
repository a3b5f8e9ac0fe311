"""Chat message persistence."""

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from ..schema import Message


class MessageRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        sender_id: str,
        receiver_id: str,
        content: str | None = None,
        attachment: str | None = None,
        attachment_type: str | None = None,
    ) -> Message:
        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            attachment=attachment,
            attachment_type=attachment_type,
        )
        self.session.add(message)
        self.session.flush()
        return message

    def thread(self, user_id: str, peer_id: str) -> list[Message]:
        """Messages exchanged between two users in either direction, oldest first."""
        stmt = (
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == user_id, Message.receiver_id == peer_id),
                    and_(Message.sender_id == peer_id, Message.receiver_id == user_id),
                )
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(self.session.execute(stmt).scalars())
