"""Redis caching for deal listings and slow location searches.

Nationwide searches can take minutes, so their results are cached per
(brand, state, city, limit). Deal lists are cached briefly and dropped on
every write. Any Redis failure degrades to a cache miss.
"""

from typing import Optional

import structlog
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

logger = structlog.get_logger(__name__)


class CacheService:
    """Async Redis cache service.

    Provides simple key-value caching with TTL, pattern matching,
    and graceful error handling. All methods are async.
    """

    enabled = True

    def __init__(self, redis_url: str):
        """Initialize cache service.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
        """
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="cache_service")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)

        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Get a value from cache.

        Returns:
            Cached value as string, or None if not found or error
        """
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
        except RedisError as e:
            self.logger.error("cache_get_failed", key=key, error=str(e))
            return None

        self.logger.debug("cache_hit" if value else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """Set a value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache (string)
            ttl: Time-to-live in seconds (default: 300 = 5 minutes)

        Returns:
            True if successful, False on error
        """
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
        except RedisError as e:
            self.logger.error("cache_set_failed", key=key, error=str(e))
            return False

        self.logger.debug("cache_set", key=key, ttl=ttl, value_length=len(value))
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching a pattern.

        Args:
            pattern: Redis pattern (e.g., "deals:*")

        Returns:
            Number of keys deleted, 0 on error
        """
        try:
            redis = await self._get_redis()
            keys = [key async for key in redis.scan_iter(match=pattern, count=100)]
            deleted = await redis.delete(*keys) if keys else 0
        except RedisError as e:
            self.logger.error("cache_pattern_delete_failed", pattern=pattern, error=str(e))
            return 0

        self.logger.info("cache_pattern_delete", pattern=pattern, keys_deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True
        except (RedisError, OSError) as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connection. Called on application shutdown."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


class NullCache(CacheService):
    """Stand-in used when REDIS_URL is empty: every read is a miss."""

    enabled = False

    def __init__(self):
        self.redis_url = ""
        self._redis = None
        self.logger = logger.bind(service="cache_service")

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        return False

    async def delete_pattern(self, pattern: str) -> int:
        return 0

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


def build_cache(redis_url: str) -> CacheService:
    """Create the process-wide cache; a blank URL disables caching."""
    if not redis_url:
        logger.info("cache_disabled")
        return NullCache()
    return CacheService(redis_url)


async def invalidate_deals_cache(cache: CacheService) -> int:
    """Drop every cached deal listing. Called after any deal write."""
    deleted = await cache.delete_pattern("deals:*")
    logger.info("deals_cache_invalidated", keys_deleted=deleted)
    return deleted


def cache_key_for_deals(
    category: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    max_distance: Optional[float] = None,
    sort_by: Optional[str] = None,
) -> str:
    """Generate cache key for the deals listing.

    The origin goes into the key unrounded.
    """
    parts = ["deals", f"s{sort_by or 'default'}"]

    if category:
        parts.append(f"c{category}")

    if lat is not None and lng is not None:
        parts.append(f"o{lat},{lng}")

    if max_distance is not None:
        parts.append(f"d{max_distance}")

    return ":".join(parts)


def cache_key_for_nationwide(
    brand: str,
    state: Optional[str] = None,
    city: Optional[str] = None,
    limit: Optional[int] = None,
) -> str:
    """Generate cache key for a nationwide brand search."""
    parts = ["nationwide", brand.strip().lower()]

    if state:
        parts.append(f"st{state.strip().lower()}")

    if city:
        parts.append(f"ci{city.strip().lower()}")

    if limit:
        parts.append(f"l{limit}")

    return ":".join(parts)
