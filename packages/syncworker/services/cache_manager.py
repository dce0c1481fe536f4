"""
Redis cache invalidation for the portal's search results.

The portal caches search responses under ``search:*``. Any search vector
change made by a sync run has to drop those entries.
"""

import logging

import redis.asyncio as aioredis

from packages.docshub.config import settings

logger = logging.getLogger(__name__)


class CacheManager:
    """Delete cached entries by key pattern."""

    def __init__(self, redis_client: aioredis.Redis):
        self.redis = redis_client

    async def delete(self, pattern: str) -> int:
        """Delete keys matching pattern.

        Errors are logged and swallowed; a stale cache entry expires on its
        own and must not fail a sync.

        Returns:
            Number of keys deleted
        """
        deleted = 0
        try:
            cursor = 0
            while True:
                cursor, keys = await self.redis.scan(cursor, match=pattern, count=100)
                if keys:
                    deleted += await self.redis.delete(*keys)
                if cursor == 0:
                    break
        except Exception as e:
            logger.warning("Cache delete error for pattern %s: %s", pattern, e, exc_info=True)
        return deleted

    async def invalidate_search(self) -> int:
        return await self.delete(settings.SEARCH_CACHE_PATTERN)


def create_cache_manager(url: str | None = None) -> CacheManager:
    return CacheManager(aioredis.from_url(url or settings.REDIS_URL, decode_responses=True))
