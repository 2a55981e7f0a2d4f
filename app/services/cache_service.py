"""Redis cache operations (idempotency keys)"""
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis

from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class CacheService:
    """Service for Redis cache operations; failures never fail a request"""

    _redis_client: Optional[redis.Redis] = None

    @classmethod
    async def get_redis_client(cls) -> redis.Redis:
        """
        Get or create Redis client singleton.

        Returns:
            Redis client instance
        """
        if cls._redis_client is None:
            cls._redis_client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return cls._redis_client

    @classmethod
    async def close_redis_client(cls):
        """Close Redis connection"""
        if cls._redis_client:
            await cls._redis_client.aclose()
            cls._redis_client = None

    @classmethod
    async def get(cls, key: str) -> Optional[str]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value if exists, None otherwise
        """
        try:
            client = await cls.get_redis_client()
            return await client.get(key)
        except Exception as e:
            logger.warning("Cache get error for key '%s': %s", key, e)
            return None

    @classmethod
    async def set(cls, key: str, value: str, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds (default: 3600 = 1 hour)

        Returns:
            True if successful, False otherwise
        """
        try:
            client = await cls.get_redis_client()
            await client.setex(key, ttl, value)
            return True
        except Exception as e:
            logger.warning("Cache set error for key '%s': %s", key, e)
            return False

    @staticmethod
    def idempotency_key(scope: str, key: str, principal: Any) -> str:
        """Cache key for an Idempotency-Key header value"""
        return f"idempotency:{scope}:{key}:{principal}"

    @classmethod
    async def get_json(cls, key: str) -> Optional[dict]:
        """Get a cached JSON document"""
        cached = await cls.get(key)
        if cached is None:
            return None
        try:
            return json.loads(cached)
        except ValueError:
            logger.warning("Discarding malformed cache entry '%s'", key)
            return None

    @classmethod
    async def set_json(cls, key: str, value: dict, ttl: Optional[int] = None) -> bool:
        """Cache a JSON-serializable document"""
        return await cls.set(
            key,
            json.dumps(value, default=str),
            ttl=ttl if ttl is not None else settings.idempotency_ttl_seconds,
        )

    @classmethod
    async def health_check(cls) -> bool:
        """
        Check if Redis connection is healthy.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            client = await cls.get_redis_client()
            await client.ping()
            return True
        except Exception:
            return False
