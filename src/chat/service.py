"""Internal chat: persist messages, then push them to the receiver's inbox."""

import logging
from typing import Any

from sqlalchemy.orm import sessionmaker

from core.exceptions import ValidationError
from db.repositories import MessageRepository
from db.schema import Message
from db.transaction import transaction
from db.utils import as_utc
from pubsub.channels import MessageEvent, user_topic
from pubsub.publisher import EventPublisher

logger = logging.getLogger(__name__)


def message_event(message: Message) -> MessageEvent:
    return MessageEvent(
        id=message.id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        content=message.content,
        attachment=message.attachment,
        attachment_type=message.attachment_type,
        created_at=as_utc(message.created_at),
    )


class ChatService:
    def __init__(self, session_factory: sessionmaker[Any], publisher: EventPublisher):
        self._session_factory = session_factory
        self._publisher = publisher

    def send_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str | None = None,
        attachment: str | None = None,
        attachment_type: str | None = None,
    ) -> MessageEvent:
        """Store a message and notify the receiver's open streams.

        The message is committed before it is published, so a stream client
        reloading its thread always finds what it was pushed.
        """
        if not sender_id or not receiver_id or not (content or attachment):
            raise ValidationError("Missing fields")

        with self._session_factory() as session, transaction(session):
            message = MessageRepository(session).create(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content or None,
                attachment=attachment or None,
                attachment_type=attachment_type or None,
            )

        event = message_event(message)
        delivered = self._publisher.publish(user_topic(receiver_id), event.to_payload())
        logger.debug(f"Message {message.id} delivered to {delivered} open stream(s)")
        return event

    def get_thread(self, user_id: str, peer_id: str) -> list[MessageEvent]:
        if not user_id or not peer_id:
            raise ValidationError("userId and peerId required")

        with self._session_factory() as session:
            return [message_event(m) for m in MessageRepository(session).thread(user_id, peer_id)]
