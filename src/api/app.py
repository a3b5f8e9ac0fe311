"""FastAPI application factory for the logistics live service."""

from __future__ import annotations

import logging
import random
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import sessionmaker

from api.auth import verify_api_key
from api.middleware.security_headers import SecurityHeadersMiddleware
from api.routes import chat, shipments, tracking, vehicle
from api.streaming import StreamManager
from chat.service import ChatService
from core.exceptions import TransientError
from notifications.dispatcher import NotificationDispatcher, create_dispatcher
from pubsub.bus import EventBus
from pubsub.publisher import EventPublisher, RedisRelayPublisher
from pubsub.redis_relay import RedisRelaySubscriber
from settings import Settings, SimulationSettings, get_settings
from shipments.service import ShipmentService
from vehicle.runner import SimulationRunner
from vehicle.service import VehicleTrackingService
from vehicle.simulation import PositionSimulator, SpeedModel

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

TRANSIENT_RETRY_AFTER_SECONDS = 1


def build_simulator(settings: SimulationSettings) -> PositionSimulator:
    rng = random.Random(settings.random_seed)
    return PositionSimulator(
        speed_model=SpeedModel(rng=rng),
        min_elapsed_seconds=settings.min_elapsed_seconds,
    )


def transient_error_handler(request: Request, exc: Exception) -> Response:
    """503 with Retry-After for failures that may clear on their own (locked store, relay down)."""
    logger.warning(f"{request.method} {request.url.path} failed transiently: {exc}")
    message = exc.message if isinstance(exc, TransientError) else str(exc)
    return JSONResponse(
        status_code=503,
        content={"detail": message},
        headers={"Retry-After": str(TRANSIENT_RETRY_AFTER_SECONDS)},
    )


def create_app(
    session_factory: sessionmaker[Any],
    settings: Settings | None = None,
    event_bus: EventBus | None = None,
    relay_publisher: RedisRelayPublisher | None = None,
    redis_client: Redis[str] | None = None,
    simulator: PositionSimulator | None = None,
    notifier: NotificationDispatcher | None = None,
) -> FastAPI:
    """Create FastAPI application with injected dependencies.

    Args:
        session_factory: SQLAlchemy session factory for the store
        settings: Application settings (loaded from the environment if omitted)
        event_bus: Bus shared by publishers and stream channels
        relay_publisher: Sync Redis publisher for cross-process fan-out (optional)
        redis_client: Async Redis client the relay listener subscribes with (optional)
        simulator: Position simulator (built from simulation settings if omitted)
        notifier: Status notification dispatcher (built from settings if omitted)
    """
    settings = settings or get_settings()
    bus = event_bus or EventBus()
    publisher = EventPublisher(bus, relay=relay_publisher)
    stream_manager = StreamManager(bus, max_queue_size=settings.stream.max_queue_size)

    vehicle_tracking = VehicleTrackingService(
        session_factory,
        publisher,
        simulator=simulator or build_simulator(settings.simulation),
    )
    chat_service = ChatService(session_factory, publisher)
    shipment_service = ShipmentService(session_factory, publisher, vehicle_tracking)
    runner = SimulationRunner(vehicle_tracking, interval=settings.simulation.tick_interval_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> Any:
        """Manage application startup and shutdown."""
        relay_subscriber = None
        if redis_client is not None and relay_publisher is not None:
            relay_subscriber = RedisRelaySubscriber(
                redis_client, bus, settings.redis.channel, origin=relay_publisher.origin
            )
            app.state.relay_subscriber = relay_subscriber
            await relay_subscriber.start()

        if settings.simulation.enabled:
            await runner.start()
        yield
        stream_manager.close_all()
        await runner.stop()
        if relay_subscriber is not None:
            await relay_subscriber.stop()
        if relay_publisher is not None:
            relay_publisher.close()

    app = FastAPI(
        title="Logistics Live Service",
        version="1.0.0",
        description="Shipment tracking, internal chat and simulated vehicle positions "
        "with live server-sent event streams",
        lifespan=lifespan,
    )

    # Set core dependencies immediately (not in lifespan) so they're available for testing
    app.state.settings = settings
    app.state.event_bus = bus
    app.state.publisher = publisher
    app.state.stream_manager = stream_manager
    app.state.session_factory = session_factory
    app.state.chat_service = chat_service
    app.state.shipment_service = shipment_service
    app.state.vehicle_tracking = vehicle_tracking
    app.state.simulation_runner = runner
    app.state.notifier = notifier or create_dispatcher(settings.notifications)

    origins = settings.cors.origins.split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_exception_handler(TransientError, transient_error_handler)

    app.include_router(chat.router, prefix="/chat", tags=["chat"])
    app.include_router(shipments.router, prefix="/shipments", tags=["shipments"])
    app.include_router(tracking.router, prefix="/tracking", tags=["tracking"])
    app.include_router(vehicle.router, prefix="/vehicle-tracking", tags=["vehicle"])
    app.include_router(
        vehicle.simulation_router, prefix="/vehicle-simulation", tags=["vehicle"]
    )

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for monitoring (unauthenticated for infrastructure)."""
        return {"status": "healthy"}

    @app.get("/auth/validate")
    async def validate_api_key_endpoint(
        _: str = Depends(verify_api_key),
    ) -> dict[str, str]:
        """Returns 200 for a valid API key, 401 otherwise."""
        return {"status": "authenticated"}

    return app
