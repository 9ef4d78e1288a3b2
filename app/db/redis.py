"""
Redis connection management.

Redis backs one thing in the API process: the transcript cache
(app.services.transcript_cache.RedisCacheBackend). It is optional; with
REDIS_CACHE_ENABLED=false, or when Redis is unreachable at startup, the
cache falls back to process memory.

Celery talks to Redis on its own through CELERY_BROKER_URL.
"""

from typing import Optional

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """
    Create the connection pool and verify it with a PING.

    Called during application startup. Raises RedisError / OSError when
    Redis is unreachable; the pool is discarded in that case.
    """
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    logger.info("initializing_redis", url=settings.REDIS_URL.split("@")[-1])

    pool = ConnectionPool.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        max_connections=20,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )
    client = Redis(connection_pool=pool)

    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error("redis_connection_failed", error=str(e))
        await client.aclose()
        await pool.disconnect()
        raise

    _redis_pool, _redis_client = pool, client
    logger.info("redis_connection_successful")
    return client


async def get_redis() -> Redis:
    """
    The shared client, initializing it on first use.

    Celery workers never run the API lifespan, so their first cache access
    opens the pool here.
    """
    if _redis_client is None:
        return await init_redis()
    return _redis_client


async def close_redis() -> None:
    """Close the client and its pool. Called during application shutdown."""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        logger.info("closing_redis")
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None


async def check_redis_health() -> bool:
    """PING Redis. Never raises; False when down or never initialized."""
    if _redis_client is None:
        return False
    try:
        return bool(await _redis_client.ping())
    except (RedisError, OSError) as e:
        logger.warning("redis_health_check_failed", error=str(e))
        return False
