"""Redis connection and utilities"""
import logging
from typing import Optional
import redis.asyncio as aioredis
from app.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client wrapper"""
    
    def __init__(self):
        self.redis: Optional[aioredis.Redis] = None
    
    async def connect(self, url: Optional[str] = None):
        """Connect to Redis if a URL is configured"""
        url = url or settings.REDIS_URL
        if not url:
            logger.info("REDIS_URL not set, advisory locks are process-local only")
            return
        self.redis = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True
        )
    
    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.close()
            self.redis = None
    
    async def acquire_lock(self, key: str, token: str, ttl: int) -> bool:
        """Take an advisory lock; always granted when Redis is not connected"""
        if not self.redis:
            return True
        return bool(await self.redis.set(key, token, nx=True, ex=ttl))
    
    async def release_lock(self, key: str, token: str):
        """Release an advisory lock only if we still own it"""
        if not self.redis:
            return
        if await self.redis.get(key) == token:
            await self.redis.delete(key)


redis_client = RedisClient()
