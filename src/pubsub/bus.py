"""In-process publish/subscribe registry for live notifications.

The bus maps a topic key to the set of subscribers currently listening on it
and fans each published payload out to all of them. It is best-effort,
at-most-once multicast: nothing is buffered, and a subscriber that registers
after a publish never sees that event. The durable store remains the system
of record; the bus only speeds up delivery to open connections.
"""

import logging
import threading
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Subscriber(Protocol):
    """Anything able to receive a published payload."""

    def deliver(self, payload: dict[str, Any]) -> None: ...


class EventBus:
    """Topic-keyed subscriber registry.

    Handlers running in the threadpool and the event loop both touch the
    registry, so mutations are serialized by a lock. Subscriber callbacks
    run outside the lock on a snapshot of the set.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[Subscriber]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic_key: str, subscriber: Subscriber) -> None:
        if not topic_key:
            return
        with self._lock:
            self._subscribers.setdefault(topic_key, set()).add(subscriber)
        logger.debug("Subscribed to %s", topic_key)

    def unsubscribe(self, topic_key: str, subscriber: Subscriber) -> None:
        with self._lock:
            subscribers = self._subscribers.get(topic_key)
            if subscribers is None:
                return
            subscribers.discard(subscriber)
            if not subscribers:
                del self._subscribers[topic_key]
        logger.debug("Unsubscribed from %s", topic_key)

    def publish(self, topic_key: str, payload: dict[str, Any]) -> int:
        """Deliver payload to every current subscriber of topic_key.

        A failing subscriber is logged and skipped. Returns the number of
        successful deliveries (0 when nobody is listening).
        """
        with self._lock:
            subscribers = list(self._subscribers.get(topic_key, ()))

        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber.deliver(payload)
                delivered += 1
            except Exception:
                logger.exception("Subscriber delivery failed on topic %s", topic_key)
        return delivered

    def subscriber_count(self, topic_key: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic_key, ()))

    def has_topic(self, topic_key: str) -> bool:
        with self._lock:
            return topic_key in self._subscribers

    def topics(self) -> list[str]:
        with self._lock:
            return list(self._subscribers)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
