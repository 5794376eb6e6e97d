"""Redis store for caching and distributed locks.

Handles:
- Caching with TTL policies
- Distributed locks (one counter sweep per game at a time)

TTL policies:
- Signed object URLs: lifetime of the URL minus a safety margin
- Counter sweep locks: 60 seconds (configurable)
"""

import logging

import redis.asyncio as redis

from gamecatalog.settings import Settings

# Key prefixes
PREFIX_SIGNED_URL = "signed_url:"
PREFIX_LOCK = "lock:"

# Seconds shaved off a signed URL's lifetime before it is cached
SIGNED_URL_CACHE_MARGIN = 60

logger = logging.getLogger("uvicorn.error")


class RedisStore:
    """Thin wrapper over a redis.asyncio client."""

    def __init__(self, client: redis.Redis):
        self._redis: redis.Redis | None = client

    @classmethod
    async def connect(cls, settings: Settings) -> "RedisStore":
        """Open the Redis connection and validate it."""
        client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        # Validate connectivity early (especially for `rediss://` in production).
        await client.ping()
        logger.info("Redis connected")
        return cls(client)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            raise RuntimeError("Redis connection is closed.")
        return self._redis

    # ============================================================
    # Generic cache operations
    # ============================================================

    async def cache_get(self, key: str) -> str | None:
        """Get value from cache, or None if not found."""
        return await self._get_redis().get(key)

    async def cache_set(self, key: str, value: str, ttl: int) -> None:
        """Set value in cache with TTL (seconds)."""
        await self._get_redis().setex(key, ttl, value)

    async def cache_delete(self, key: str) -> None:
        await self._get_redis().delete(key)

    # ============================================================
    # Signed URL cache
    # ============================================================

    async def get_signed_url_cache(self, object_key: str, expires_in: int) -> str | None:
        return await self.cache_get(f"{PREFIX_SIGNED_URL}{expires_in}:{object_key}")

    async def set_signed_url_cache(self, object_key: str, expires_in: int, url: str) -> None:
        """Cache a signed URL for slightly less than its lifetime.

        URLs that live shorter than the margin are not cached.
        """
        ttl = expires_in - SIGNED_URL_CACHE_MARGIN
        if ttl <= 0:
            return
        await self.cache_set(f"{PREFIX_SIGNED_URL}{expires_in}:{object_key}", url, ttl)

    # ============================================================
    # Distributed locks
    # ============================================================

    async def acquire_lock(self, key: str, ttl: int) -> bool:
        """Acquire a distributed lock.

        Args:
            key: Lock key (e.g., "counters:<game id>").
            ttl: Lock timeout in seconds.

        Returns:
            True if lock acquired, False if already locked.
        """
        lock_key = f"{PREFIX_LOCK}{key}"
        # SET NX (only if not exists) with TTL
        result = await self._get_redis().set(lock_key, "1", nx=True, ex=ttl)
        return result is not None

    async def release_lock(self, key: str) -> None:
        await self.cache_delete(f"{PREFIX_LOCK}{key}")
