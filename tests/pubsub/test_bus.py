import threading

import pytest

from pubsub.bus import EventBus, Subscriber
from tests.factories import FailingSubscriber, RecordingSubscriber

pytestmark = pytest.mark.unit


def test_publish_reaches_every_subscriber_of_the_key():
    bus = EventBus()
    first, second, other = RecordingSubscriber(), RecordingSubscriber(), RecordingSubscriber()
    bus.subscribe("user:42", first)
    bus.subscribe("user:42", second)
    bus.subscribe("user:7", other)

    delivered = bus.publish("user:42", {"type": "message", "content": "hi"})

    assert delivered == 2
    assert first.received == [{"type": "message", "content": "hi"}]
    assert second.received == [{"type": "message", "content": "hi"}]
    assert other.received == []


def test_publish_without_subscribers_is_dropped():
    bus = EventBus()
    assert bus.publish("user:nobody", {"type": "message"}) == 0
    assert bus.topics() == []


def test_late_subscriber_does_not_see_past_events():
    bus = EventBus()
    bus.publish("user:42", {"n": 1})
    late = RecordingSubscriber()
    bus.subscribe("user:42", late)
    bus.publish("user:42", {"n": 2})
    assert late.received == [{"n": 2}]


def test_empty_key_is_never_registered():
    bus = EventBus()
    bus.subscribe("", RecordingSubscriber())
    assert bus.topics() == []
    assert bus.publish("", {"n": 1}) == 0


def test_duplicate_subscribe_is_idempotent():
    bus = EventBus()
    sub = RecordingSubscriber()
    bus.subscribe("waybill:KPL-12345", sub)
    bus.subscribe("waybill:KPL-12345", sub)

    assert bus.subscriber_count("waybill:KPL-12345") == 1
    bus.publish("waybill:KPL-12345", {"n": 1})
    assert sub.received == [{"n": 1}]


def test_last_unsubscribe_removes_the_key():
    bus = EventBus()
    a, b = RecordingSubscriber(), RecordingSubscriber()
    bus.subscribe("user:42", a)
    bus.subscribe("user:42", b)

    bus.unsubscribe("user:42", a)
    assert bus.has_topic("user:42")

    bus.unsubscribe("user:42", b)
    assert not bus.has_topic("user:42")
    assert bus.subscriber_count("user:42") == 0


def test_unsubscribe_unknown_is_noop():
    bus = EventBus()
    sub = RecordingSubscriber()
    bus.unsubscribe("user:missing", sub)

    bus.subscribe("user:42", sub)
    bus.unsubscribe("user:42", RecordingSubscriber())
    assert bus.subscriber_count("user:42") == 1


@pytest.mark.critical
def test_failing_subscriber_does_not_block_others():
    bus = EventBus()
    before, failing, after = RecordingSubscriber(), FailingSubscriber(), RecordingSubscriber()
    for sub in (before, failing, after):
        bus.subscribe("user:42", sub)

    delivered = bus.publish("user:42", {"n": 1})

    assert delivered == 2
    assert failing.calls == 1
    assert before.received == [{"n": 1}]
    assert after.received == [{"n": 1}]


def test_subscriber_may_unsubscribe_during_delivery():
    bus = EventBus()

    class OneShot:
        def __init__(self):
            self.calls = 0

        def deliver(self, payload):
            self.calls += 1
            bus.unsubscribe("user:42", self)

    one_shot, steady = OneShot(), RecordingSubscriber()
    bus.subscribe("user:42", one_shot)
    bus.subscribe("user:42", steady)

    bus.publish("user:42", {"n": 1})
    bus.publish("user:42", {"n": 2})

    assert one_shot.calls == 1
    assert steady.received == [{"n": 1}, {"n": 2}]


def test_clear_drops_all_topics():
    bus = EventBus()
    bus.subscribe("user:1", RecordingSubscriber())
    bus.subscribe("user:2", RecordingSubscriber())
    bus.clear()
    assert bus.topics() == []


def test_recording_subscriber_satisfies_protocol():
    assert isinstance(RecordingSubscriber(), Subscriber)


@pytest.mark.critical
def test_concurrent_subscribe_publish_unsubscribe_leaves_no_empty_sets():
    bus = EventBus()
    errors: list[BaseException] = []

    def churn(worker: int) -> None:
        try:
            for i in range(200):
                sub = RecordingSubscriber()
                key = f"user:{(worker + i) % 5}"
                bus.subscribe(key, sub)
                bus.publish(key, {"worker": worker, "i": i})
                bus.unsubscribe(key, sub)
        except BaseException as e:  # pragma: no cover - surfaced by the assertion
            errors.append(e)

    threads = [threading.Thread(target=churn, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert bus.topics() == []
