"""Redis pub/sub listener feeding relayed events into the local bus."""

import asyncio
import contextlib
import json
import logging
from typing import Any

import redis.asyncio as redis

from pubsub.bus import EventBus

logger = logging.getLogger(__name__)


class RedisRelaySubscriber:
    """Re-publishes events relayed by other processes onto the local bus.

    Envelopes carrying this process's own origin are skipped, since the
    local bus already delivered them when they were published.
    """

    def __init__(self, redis_client: Any, bus: EventBus, channel: str, origin: str):
        self.redis_client = redis_client
        self.bus = bus
        self.channel = channel
        self.origin = origin
        self.task: asyncio.Task[None] | None = None
        self.reconnect_delay = 5.0
        self._subscribed = asyncio.Event()

    async def start(self) -> None:
        """Start listening and wait for the subscription to be established."""
        self.task = asyncio.create_task(self._subscribe_and_forward())
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=10.0)
            logger.info(f"Redis relay ready - subscribed to {self.channel}")
        except TimeoutError:
            logger.warning("Redis relay subscription timeout - proceeding anyway")

    async def stop(self) -> None:
        if self.task:
            self.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.task

    def handle_message(self, raw: str | bytes) -> bool:
        """Forward one relayed envelope; returns True when it reached the bus."""
        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from Redis: {raw!r}")
            return False

        if not isinstance(envelope, dict) or envelope.get("origin") == self.origin:
            return False

        topic_key = envelope.get("topic")
        payload = envelope.get("payload")
        if not topic_key or not isinstance(payload, dict):
            logger.warning(f"Malformed relay envelope: {envelope!r}")
            return False

        self.bus.publish(topic_key, payload)
        return True

    async def _subscribe_and_forward(self) -> None:
        while True:
            try:
                pubsub = self.redis_client.pubsub()
                await pubsub.subscribe(self.channel)
                self._subscribed.set()
                logger.info(f"Subscribed to Redis channel: {self.channel}")

                async for message in pubsub.listen():
                    if message["type"] == "message":
                        self.handle_message(message["data"])

            except redis.ConnectionError:
                logger.error(f"Redis disconnected, reconnecting in {self.reconnect_delay}s...")
                await asyncio.sleep(self.reconnect_delay)
            except asyncio.CancelledError:
                break
