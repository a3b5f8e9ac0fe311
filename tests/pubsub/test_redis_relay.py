import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from pubsub.bus import EventBus
from pubsub.redis_relay import RedisRelaySubscriber
from tests.factories import RecordingSubscriber

pytestmark = pytest.mark.unit


def create_pubsub_mock(messages):
    """Helper to create a pubsub mock with given messages."""
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    idx = [0]

    async def mock_listen():
        while idx[0] < len(messages):
            yield messages[idx[0]]
            idx[0] += 1
        while True:
            await asyncio.sleep(1)

    pubsub.listen = mock_listen
    return pubsub


def envelope(origin: str, topic: str, payload: dict) -> dict:
    return {
        "type": "message",
        "channel": "logistics-events",
        "data": json.dumps({"origin": origin, "topic": topic, "payload": payload}),
    }


@pytest.mark.asyncio
async def test_relay_subscribes_on_start():
    client = MagicMock()
    pubsub = create_pubsub_mock([])
    client.pubsub.return_value = pubsub

    relay = RedisRelaySubscriber(client, EventBus(), "logistics-events", origin="proc-a")
    await relay.start()
    await asyncio.sleep(0.02)

    pubsub.subscribe.assert_called_once_with("logistics-events")
    await relay.stop()


@pytest.mark.asyncio
async def test_foreign_events_reach_local_bus_and_own_events_are_skipped():
    bus = EventBus()
    sub = RecordingSubscriber()
    bus.subscribe("user:42", sub)

    client = MagicMock()
    client.pubsub.return_value = create_pubsub_mock(
        [
            {"type": "subscribe", "channel": "logistics-events", "data": 1},
            envelope("proc-a", "user:42", {"n": "own"}),
            envelope("proc-b", "user:42", {"n": "foreign"}),
        ]
    )

    relay = RedisRelaySubscriber(client, bus, "logistics-events", origin="proc-a")
    await relay.start()
    await asyncio.sleep(0.05)
    await relay.stop()

    assert sub.received == [{"n": "foreign"}]


def test_invalid_json_is_skipped():
    relay = RedisRelaySubscriber(MagicMock(), EventBus(), "logistics-events", origin="proc-a")
    assert relay.handle_message("{not json") is False


def test_malformed_envelope_is_skipped():
    bus = EventBus()
    sub = RecordingSubscriber()
    bus.subscribe("user:42", sub)
    relay = RedisRelaySubscriber(MagicMock(), bus, "logistics-events", origin="proc-a")

    assert relay.handle_message(json.dumps({"origin": "proc-b", "payload": {}})) is False
    assert relay.handle_message(json.dumps({"origin": "proc-b", "topic": "user:42"})) is False
    assert relay.handle_message(json.dumps([1, 2])) is False
    assert sub.received == []


@pytest.mark.asyncio
async def test_stop_without_start_is_safe():
    relay = RedisRelaySubscriber(MagicMock(), EventBus(), "logistics-events", origin="proc-a")
    await relay.stop()
