import os

# Credential fields have no defaults (services must fail without secrets).
# Provide test values so Settings() can be constructed in tests.
os.environ.setdefault("API_KEY", "test-api-key")

import random
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from chat.service import ChatService
from db.database import init_database
from pubsub.bus import EventBus
from pubsub.publisher import EventPublisher
from settings import Settings
from shipments.service import ShipmentService
from tests.factories import FakeClock
from vehicle.service import VehicleTrackingService
from vehicle.simulation import PositionSimulator, SpeedModel


@pytest.fixture
def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file."""
    return init_database(str(tmp_path / "db" / "logistics.db"))


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def publisher(event_bus: EventBus) -> EventPublisher:
    return EventPublisher(event_bus)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def simulator() -> PositionSimulator:
    """Seeded simulator so speed draws are reproducible."""
    return PositionSimulator(SpeedModel(rng=random.Random(42)), min_elapsed_seconds=1.0)


@pytest.fixture
def vehicle_service(session_factory, publisher, simulator, clock) -> VehicleTrackingService:
    return VehicleTrackingService(session_factory, publisher, simulator=simulator, clock=clock)


@pytest.fixture
def shipment_service(session_factory, publisher, vehicle_service) -> ShipmentService:
    return ShipmentService(
        session_factory, publisher, vehicle_tracking=vehicle_service, rng=random.Random(7)
    )


@pytest.fixture
def chat_service(session_factory, publisher) -> ChatService:
    return ChatService(session_factory, publisher)


@pytest.fixture
def test_settings(monkeypatch) -> Settings:
    """Settings with the background simulation loop disabled."""
    monkeypatch.setenv("API_KEY", "test-api-key")
    monkeypatch.setenv("SIM_ENABLED", "false")
    return Settings()


@pytest.fixture
def mock_notifier():
    """Mock notification dispatcher."""
    notifier = Mock()
    notifier.notify_status_change = AsyncMock()
    return notifier


@pytest.fixture
def app(session_factory, test_settings, event_bus, mock_notifier) -> FastAPI:
    from api.app import create_app

    return create_app(
        session_factory,
        settings=test_settings,
        event_bus=event_bus,
        simulator=PositionSimulator(SpeedModel(rng=random.Random(1))),
        notifier=mock_notifier,
    )


@pytest.fixture
def test_client(app: FastAPI):
    with TestClient(app) as client:
        yield client
