"""Redis store for the cache-aside layer.

Handles:
- Connection lifecycle
- Raw get/set-with-TTL/delete operations
- Translating Redis failures into CacheError

TTL policies and key naming live in app.services.cache (CacheConfig / CacheKeys):
- Preset list pages: ~5 minutes (personalized pages: ~1 minute)
- Preset detail: ~5 minutes
- Package metadata: ~1 hour
- Tag lists: ~10 minutes
- User stats: ~1 minute
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.errors import CacheError
from app.settings import get_settings

# Redis client (initialized on startup)
_redis: redis.Redis | None = None
logger = logging.getLogger("uvicorn.error")


async def init_redis() -> None:
    """Initialize Redis connection."""
    global _redis
    settings = get_settings()
    _redis = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
    )
    # Validate connectivity early (especially for `rediss://` in production).
    await _redis.ping()
    logger.info("Redis connected")


async def close_redis() -> None:
    """Close Redis connection."""
    global _redis
    if _redis:
        await _redis.aclose()
        _redis = None


def _get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if _redis is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis


# ============================================================
# Generic cache operations
# ============================================================


async def cache_get(key: str) -> str | None:
    """Get value from cache.

    Args:
        key: Cache key.

    Returns:
        Cached value or None if not found.
    """
    return await _get_redis().get(key)


async def cache_set(key: str, value: str, ttl: int) -> None:
    """Set value in cache with TTL.

    Args:
        key: Cache key.
        value: Value to cache.
        ttl: Time-to-live in seconds.
    """
    await _get_redis().setex(key, ttl, value)


async def cache_delete(*keys: str) -> None:
    """Delete values from cache (missing keys are ignored).

    Args:
        keys: Cache keys.
    """
    if keys:
        await _get_redis().delete(*keys)


# ============================================================
# Cache-aside backend
# ============================================================


class RedisCacheBackend:
    """CacheBackend over the module-level Redis client.

    If Redis was never initialized (startup failure, local minimal env) every
    call raises CacheError, which the controller treats as a miss.
    """

    async def get(self, key: str) -> str | None:
        try:
            return await cache_get(key)
        except (RedisError, RuntimeError) as e:
            raise CacheError(f"Redis GET failed: {e}", {"key": key}) from e

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await cache_set(key, value, ttl)
        except (RedisError, RuntimeError) as e:
            raise CacheError(f"Redis SETEX failed: {e}", {"key": key}) from e

    async def delete(self, keys: list[str]) -> None:
        try:
            await cache_delete(*keys)
        except (RedisError, RuntimeError) as e:
            raise CacheError(f"Redis DEL failed: {e}", {"keys": keys}) from e
