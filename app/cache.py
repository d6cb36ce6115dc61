"""Cache management module."""
from typing import Optional

import redis.asyncio as redis

from app.config import settings


class CacheManager:
    """A class to manage the Redis cache of ranked search responses."""
    def __init__(self, redis_url: Optional[str] = None):
        """Initialize the CacheManager."""
        self.redis_url = redis_url or settings.REDIS_URL
        self.redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        """Get a value from the cache."""
        return await self.redis.get(key)

    async def set(self, key: str, value: str, expire: int = settings.SEARCH_CACHE_TTL):
        """Set a value in the cache."""
        await self.redis.set(key, value, ex=expire)

    async def ping(self) -> bool:
        """Check the Redis connection."""
        return await self.redis.ping()

    async def close(self):
        """Close the Redis connection."""
        await self.redis.aclose()

cache_manager = CacheManager()
