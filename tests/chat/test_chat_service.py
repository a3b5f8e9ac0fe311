import pytest

from core.exceptions import ValidationError
from pubsub.channels import user_topic
from tests.factories import RecordingSubscriber

pytestmark = pytest.mark.unit


def test_message_committed_before_push(chat_service, event_bus):
    seen_in_store = []

    class CheckingSubscriber:
        def deliver(self, payload):
            # A client refetching its thread on push must find the message
            thread = chat_service.get_thread("user-42", "user-7")
            seen_in_store.append([m.id for m in thread])

    event_bus.subscribe(user_topic("user-42"), CheckingSubscriber())

    event = chat_service.send_message("user-7", "user-42", content="hi")

    assert seen_in_store == [[event.id]]


def test_push_payload_matches_returned_event(chat_service, event_bus):
    sub = RecordingSubscriber()
    event_bus.subscribe(user_topic("user-42"), sub)

    event = chat_service.send_message("user-7", "user-42", content="habari")

    assert sub.received == [event.to_payload()]
    assert sub.received[0]["senderId"] == "user-7"


def test_message_to_offline_user_is_still_stored(chat_service):
    chat_service.send_message("user-7", "user-42", content="are you there?")

    thread = chat_service.get_thread("user-7", "user-42")

    assert [m.content for m in thread] == ["are you there?"]


def test_blank_optional_fields_stored_as_none(chat_service):
    event = chat_service.send_message(
        "user-7",
        "user-42",
        content="",
        attachment="https://files.example.com/a.jpg",
        attachment_type="",
    )
    assert event.content is None
    assert event.attachment_type is None


@pytest.mark.parametrize(
    "sender,receiver,content",
    [("", "user-42", "hi"), ("user-7", "", "hi"), ("user-7", "user-42", None)],
)
def test_send_validation(chat_service, sender, receiver, content):
    with pytest.raises(ValidationError, match="Missing fields"):
        chat_service.send_message(sender, receiver, content=content)


def test_thread_validation(chat_service):
    with pytest.raises(ValidationError):
        chat_service.get_thread("user-7", "")
