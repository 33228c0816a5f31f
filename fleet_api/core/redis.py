"""Token store connection (Redis) shared by the blacklist and rate limiter."""

import redis.asyncio as redis
from redis.exceptions import RedisError

from fleet_api.core.config import settings
from fleet_api.core.errors import StoreUnavailable
from fleet_api.core.logging import get_logger

logger = get_logger("redis")

_redis_client: redis.Redis | None = None


def is_redis_enabled() -> bool:
    return settings.redis_enabled


async def connect_redis() -> redis.Redis | None:
    """Create the shared client and verify it answers PING.

    Returns None when Redis is disabled or unreachable. Callers degrade
    instead of failing startup.
    """
    global _redis_client

    if not settings.redis_enabled:
        logger.info("Redis is disabled")
        return None

    client = redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password or None,
        db=settings.redis_db,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        decode_responses=True,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error(f"Redis connection error: {e}")
        # Keep the client: redis-py reconnects lazily once the server is back
        _redis_client = client
        return None

    _redis_client = client
    logger.info(f"Redis connected: {settings.redis_host}:{settings.redis_port}")
    return client


def set_redis_client(client: redis.Redis | None) -> None:
    """Install a client explicitly (tests, alternative bootstraps)."""
    global _redis_client
    _redis_client = client


def get_redis_client() -> redis.Redis:
    """Get the shared client.

    Raises StoreUnavailable if Redis is disabled or was never initialised.
    """
    if _redis_client is None:
        raise StoreUnavailable("Redis client not initialized")
    return _redis_client


async def check_redis_connection() -> bool:
    """Check if the token store answers PING."""
    if _redis_client is None:
        return False
    try:
        return bool(await _redis_client.ping())
    except (RedisError, OSError) as e:
        logger.debug(f"Redis connection check failed: {e}")
        return False


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing Redis client: {e}")
        _redis_client = None
