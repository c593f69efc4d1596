# ruff: noqa: PLW0603
"""Redis connection management.

The client backs the realtime comment channel (pub/sub) and the API rate
limiter. Redis is optional: when it is unreachable the service runs without
realtime push and without rate limiting.
"""

import redis.asyncio as redis

from comment_system.config import get_settings
from comment_system.core.logging import get_logger


logger = get_logger(__name__)

_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis:
    """Create the connection pool and verify it with a PING."""
    global _redis_client

    settings = get_settings()

    client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError) as e:
        logger.warning("redis_connection_failed", error=str(e))
        await client.aclose()
        raise

    _redis_client = client
    logger.info("redis_connected", url=settings.redis_url)
    return _redis_client


async def shutdown_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


def get_redis() -> redis.Redis | None:
    """Current Redis client, or None when Redis is not connected."""
    return _redis_client


def realtime_channel(channel: str) -> str:
    """Redis pub/sub channel name for a logical realtime channel."""
    return f"{get_settings().realtime_channel_prefix}:{channel}"


def rate_limit_key(client_id: str, window: int) -> str:
    """Counter key for a client in a fixed rate-limit window."""
    return f"ratelimit:{client_id}:{window}"
