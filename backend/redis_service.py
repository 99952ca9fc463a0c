"""
Redis Service for Tour & Travels
Caches dashboard summaries; every failure degrades to "no cache"
"""

import redis.asyncio as aioredis
import json
import os
from typing import Any, Optional, Dict
import logging
from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

DASHBOARD_PREFIX = "dashboard:"


class RedisService:
    def __init__(self, redis_url: Optional[str] = None, enabled: Optional[bool] = None):
        self.redis_url = redis_url or os.getenv('REDIS_URL', 'redis://localhost:6379/0')
        if enabled is None:
            enabled = os.getenv('CACHE_ENABLED', 'false').lower() == 'true'
        self.enabled = enabled
        self.default_ttl = int(os.getenv('DASHBOARD_CACHE_TTL', '60'))
        self.redis_client: Optional[aioredis.Redis] = None

    @property
    def available(self) -> bool:
        return self.enabled and self.redis_client is not None

    async def connect(self):
        """Connect to Redis"""
        if not self.enabled:
            logger.info("Cache disabled (CACHE_ENABLED=false)")
            return
        try:
            self.redis_client = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self.redis_client.ping()
            logger.info("✅ Connected to Redis")
        except Exception as e:
            logger.error(f"❌ Failed to connect to Redis, continuing without cache: {e}")
            self.redis_client = None

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("📴 Disconnected from Redis")

    async def get(self, key: str) -> Optional[str]:
        """Get value from Redis"""
        if not self.available:
            return None
        try:
            return await self.redis_client.get(key)
        except Exception as e:
            logger.error(f"Error getting key {key}: {e}")
            return None

    async def set(self, key: str, value: str, expire: Optional[int] = None) -> bool:
        """Set value in Redis with optional expiration"""
        if not self.available:
            return False
        try:
            if expire:
                return bool(await self.redis_client.setex(key, expire, value))
            else:
                return bool(await self.redis_client.set(key, value))
        except Exception as e:
            logger.error(f"Error setting key {key}: {e}")
            return False

    async def delete(self, *keys: str) -> int:
        """Delete keys from Redis"""
        if not self.available or not keys:
            return 0
        try:
            return await self.redis_client.delete(*keys)
        except Exception as e:
            logger.error(f"Error deleting keys {keys}: {e}")
            return 0

    # JSON helpers
    async def set_json(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        """Set JSON value in Redis"""
        try:
            json_str = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Error encoding JSON for key {key}: {e}")
            return False
        return await self.set(key, json_str, expire)

    async def get_json(self, key: str) -> Optional[Any]:
        """Get JSON value from Redis"""
        value = await self.get(key)
        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError as e:
            logger.error(f"Error decoding JSON key {key}: {e}")
            return None

    # Dashboard cache
    @staticmethod
    def summary_key(start: Optional[str], end: Optional[str]) -> str:
        return f"{DASHBOARD_PREFIX}{start or '*'}:{end or '*'}"

    async def cache_summary(self, key: str, summary: Dict[str, Any], expire: Optional[int] = None) -> bool:
        return await self.set_json(key, summary, expire=expire or self.default_ttl)

    async def get_cached_summary(self, key: str) -> Optional[Dict[str, Any]]:
        return await self.get_json(key)

    async def invalidate_dashboard_cache(self, event=None) -> int:
        """Drop every cached summary; used as a booking event subscriber"""
        if not self.available:
            return 0
        try:
            keys = [key async for key in self.redis_client.scan_iter(match=f"{DASHBOARD_PREFIX}*")]
            if keys:
                deleted = await self.delete(*keys)
                logger.info(f"🗑️ Invalidated {deleted} dashboard cache entries")
                return deleted
            return 0
        except Exception as e:
            logger.error(f"Error invalidating dashboard cache: {e}")
            return 0


# Global Redis service instance
redis_service = RedisService()


# FastAPI dependency
async def get_redis():
    """Dependency for FastAPI to get Redis service"""
    if redis_service.enabled and not redis_service.redis_client:
        await redis_service.connect()
    return redis_service
