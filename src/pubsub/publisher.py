"""Producer-side entry point for live notifications."""

import json
import logging
import uuid
from typing import Any

import redis
from redis.exceptions import ConnectionError

from pubsub.bus import EventBus

logger = logging.getLogger(__name__)


class RedisRelayPublisher:
    """Synchronous Redis publisher forwarding bus events to other processes.

    Uses the sync client so it can be called from threadpool handlers and
    the simulation worker thread alike.
    """

    def __init__(self, client: "redis.Redis[str]", channel: str, origin: str | None = None):
        self._client = client
        self.channel = channel
        self.origin = origin or uuid.uuid4().hex

    @classmethod
    def from_settings(cls, settings: Any, origin: str | None = None) -> "RedisRelayPublisher":
        client = redis.Redis(
            host=settings.host,
            port=settings.port,
            password=settings.password or None,
            decode_responses=True,
        )
        return cls(client, settings.channel, origin=origin)

    def relay(self, topic_key: str, payload: dict[str, Any]) -> None:
        envelope = {"origin": self.origin, "topic": topic_key, "payload": payload}
        try:
            self._client.publish(self.channel, json.dumps(envelope))
        except ConnectionError as e:
            logger.error(f"Failed to relay {topic_key} to Redis channel {self.channel}: {e}")

    def close(self) -> None:
        self._client.close()


class EventPublisher:
    """Publishes to the local bus and, optionally, relays over Redis.

    Relay failures never affect local delivery or the caller.
    """

    def __init__(self, bus: EventBus, relay: RedisRelayPublisher | None = None):
        self.bus = bus
        self.relay = relay

    def publish(self, topic_key: str, payload: dict[str, Any]) -> int:
        delivered = self.bus.publish(topic_key, payload)
        if self.relay is not None and topic_key:
            try:
                self.relay.relay(topic_key, payload)
            except Exception:
                logger.exception("Redis relay failed for topic %s", topic_key)
        return delivered
