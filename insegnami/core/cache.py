# insegnami/core/cache.py
"""Redis caching implementation."""
import json
import logging
from typing import Any, Optional, Union
from datetime import timedelta
from fastapi import Request
import redis.asyncio as redis

logger = logging.getLogger(__name__)

class CacheManager:
    """JSON cache over a single Redis connection pool.

    Constructed once at startup and handed to request handlers through
    ``get_cache``; every operation degrades to a miss when Redis is down.
    """

    def __init__(self, client: redis.Redis, namespace: str = "insegnami"):
        self.redis = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str) -> "CacheManager":
        return cls(redis.from_url(url, encoding="utf-8", decode_responses=True))

    def make_key(self, *parts: Any) -> str:
        return ":".join([self.namespace, *(str(p) for p in parts)])

    async def close(self):
        """Close Redis connection."""
        await self.redis.aclose()

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Cache ping failed: {e}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        try:
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
        return None

    async def set(
        self,
        key: str,
        value: Any,
        expire: Optional[Union[int, timedelta]] = None
    ) -> bool:
        """Set value in cache."""
        try:
            serialized = json.dumps(value, default=str)
            if expire:
                if isinstance(expire, timedelta):
                    expire = int(expire.total_seconds())
                return bool(await self.redis.setex(key, expire, serialized))
            return bool(await self.redis.set(key, serialized))
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False


async def get_cache(request: Request) -> CacheManager:
    """Dependency to get cache instance."""
    return request.app.state.cache
