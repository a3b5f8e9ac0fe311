"""Entry point for the logistics live service."""

import logging

import uvicorn
from redis.asyncio import Redis

from api.app import create_app
from app_logging import setup_logging
from db.database import init_database
from pubsub.publisher import RedisRelayPublisher
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


def create_relay_publisher(settings: Settings) -> RedisRelayPublisher | None:
    """Relay publisher when ``REDIS_ENABLED`` is set; None keeps fan-out in-process."""
    if not settings.redis.enabled:
        return None
    try:
        return RedisRelayPublisher.from_settings(settings.redis)
    except Exception as e:
        logger.warning(f"Redis relay unavailable, streaming in-process only: {e}")
        return None


def create_async_redis_client(settings: Settings) -> "Redis[str]":
    return Redis(
        host=settings.redis.host,
        port=settings.redis.port,
        password=settings.redis.password or None,
        decode_responses=True,
    )


def main() -> None:
    settings = get_settings()
    setup_logging(
        level=settings.simulation.log_level,
        json_output=settings.simulation.log_format == "json",
        environment=settings.server.environment,
    )

    session_factory = init_database(settings.database.path)
    logger.info(f"Store opened at {settings.database.path}")

    relay_publisher = create_relay_publisher(settings)
    redis_client = create_async_redis_client(settings) if relay_publisher else None
    if relay_publisher:
        logger.info(f"Redis relay enabled on channel {settings.redis.channel}")

    app = create_app(
        session_factory,
        settings=settings,
        relay_publisher=relay_publisher,
        redis_client=redis_client,
    )

    logger.info(f"Serving on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.simulation.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
