# ping_backend/services/cache.py
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class CacheService:
    """Redis-backed rate-limit counters"""

    def __init__(self, redis_url: str):
        self.redis = redis.from_url(redis_url, decode_responses=True)

    async def increment(self, key: str, ttl: int) -> int:
        """Increment a counter and return the new value; TTL is set on first hit"""
        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, ttl)
        return count

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.redis.aclose()
