"""
Redis read cache for question-set lookups.

Usage:
    from core.cache import cache

    @cache(ttl=300, key_builder=lambda f, self, question_set_id: f"question_sets:{question_set_id}")
    async def get_view(self, question_set_id: int):
        ...

Keys are namespaced with the application name. The cache fails open:
when Redis is disabled, not initialized, or erroring, calls go straight
through to the wrapped function.
"""

import json
import logging
import functools
from typing import Any, Callable, Optional
from datetime import datetime, date

from redis.asyncio import Redis, from_url
from core.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    _instance = None
    _redis: Optional[Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisCache, cls).__new__(cls)
        return cls._instance

    async def init(self):
        if not settings.cache_enabled:
            logger.info("Question-set cache disabled")
            return
        if not self._redis:
            self._redis = from_url(str(settings.redis_url), encoding="utf-8", decode_responses=True)
            logger.info("Question-set cache connected")

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Question-set cache closed")

    @property
    def available(self) -> bool:
        return self._redis is not None

    @staticmethod
    def namespaced(key: str) -> str:
        return f"{settings.app_name}:{key}"

    async def ping(self) -> bool:
        if not self.available:
            return False
        try:
            return bool(await self._redis.ping())
        except Exception as e:
            logger.warning(f"Cache ping failed: {e}")
            return False

    async def get(self, key: str) -> Optional[Any]:
        if not self.available:
            return None
        try:
            raw = await self._redis.get(self.namespaced(key))
        except Exception as e:
            logger.error(f"Cache read failed for {key}: {e}")
            return None
        return json.loads(raw) if raw else None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.available:
            return False
        try:
            await self._redis.set(self.namespaced(key), json.dumps(value, default=_encode), ex=ttl)
            return True
        except Exception as e:
            logger.error(f"Cache write failed for {key}: {e}")
            return False

    async def delete_pattern(self, pattern: str) -> int:
        """Drop every key matching a glob pattern; returns how many were removed."""
        if not self.available:
            return 0
        try:
            keys = [key async for key in self._redis.scan_iter(match=self.namespaced(pattern))]
            if keys:
                await self._redis.delete(*keys)
        except Exception as e:
            logger.error(f"Cache invalidation failed for {pattern}: {e}")
            return 0
        if keys:
            logger.debug(f"Invalidated {len(keys)} cached entries for {pattern}")
        return len(keys)


def _encode(obj):
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Type {type(obj)} not serializable")


redis_cache = RedisCache()


def cache(ttl: int, key_builder: Callable[..., str]):
    """
    Cache the JSON-serializable result of an async function.

    Args:
        ttl: Time to live in seconds
        key_builder: Receives the function followed by its call arguments
            and returns the (un-namespaced) cache key
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            key = key_builder(func, *args, **kwargs)
            cached = await redis_cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit: {key}")
                return cached

            result = await func(*args, **kwargs)
            if result is not None:
                await redis_cache.set(key, result, ttl)
            return result
        return wrapper
    return decorator
