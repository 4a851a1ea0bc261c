"""Redis connection and the fail-open doctor schedule cache."""

import json
from typing import Any

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from app.config import settings

logger = structlog.get_logger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return the process-wide async Redis client, creating it on first use."""
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password or None,
            decode_responses=settings.redis_decode_responses,
            # Short timeouts: a slow cache must not stall a scheduling request
            socket_connect_timeout=2,
            socket_timeout=2,
            health_check_interval=30,
        )

    return _redis_client


async def check_redis_connection() -> bool:
    """True if the cache is enabled and answers PING."""
    if not settings.cache_enabled:
        return False
    try:
        return bool(await get_redis_client().ping())
    except RedisError as e:
        logger.warning("redis_ping_failed", error=str(e))
        return False


async def close_redis_connection() -> None:
    """Close the Redis client if one was opened."""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


class CacheManager:
    """
    Fail-open JSON cache on top of Redis.

    Read-mostly data only (doctor schedules). Slot locks are never cached:
    a cache outage degrades to a database read, never to a wrong answer.
    """

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    async def get_json(self, key: str) -> Any | None:
        """
        Read and decode a cached JSON value.

        Args:
            key: Cache key

        Returns:
            Decoded value, or None on a miss or any cache failure
        """
        try:
            value = await self.redis.get(key)
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning("cache_value_corrupt", key=key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Encode and store a JSON value, with an optional TTL in seconds.

        Returns:
            True if the value was written
        """
        try:
            payload = json.dumps(value, default=str)
            if ttl:
                await self.redis.setex(key, ttl, payload)
            else:
                await self.redis.set(key, payload)
            return True
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        """Drop a cached value. Returns False if Redis could not be reached."""
        try:
            await self.redis.delete(key)
            return True
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False


def get_cache_manager() -> CacheManager | None:
    """Dependency for the schedule cache; None when caching is disabled."""
    if not settings.cache_enabled:
        return None
    return CacheManager(get_redis_client())
