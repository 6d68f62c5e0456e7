from typing import Optional

from redis.asyncio import Redis

from app.core.config import Settings, get_settings
from app.utiles.logger import get_logger

logger = get_logger(__name__)


def create_redis_client(settings: Optional[Settings] = None) -> Redis:
    """
    Build the shared async Redis client.

    The client connects lazily; a Redis outage only surfaces as cache misses
    inside CacheService. Socket timeouts bound every cache call.
    """
    settings = settings or get_settings()
    logger.info("Creating Redis client for %s", settings.REDIS_URL.split("@")[-1])
    return Redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        retry_on_timeout=False,
    )


async def close_redis_client(client: Optional[Redis]):
    if client is not None:
        await client.aclose()
        logger.warning("⚠️ Redis connection closed")
