from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError
import structlog

from app.services.cache.base import BaseCacheService
from app.settings import settings

logger = structlog.getLogger(__name__)


class RedisCacheService(BaseCacheService):
    """Cache misses and redis outages look the same to callers: they fall back to the database."""

    def __init__(self, host: Optional[str] = None, port: Optional[int] = None):
        self.host = host or settings.redis_host
        self.port = port or settings.redis_port
        self.redis: redis.Redis | None = None

    async def connect(self):
        pool = redis.ConnectionPool(host=self.host, port=self.port)
        self.redis = redis.Redis(connection_pool=pool)
        logger.info("Connected to redis", host=self.host, port=self.port)

    async def disconnect(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    def _client(self) -> redis.Redis:
        if not self.redis:
            raise RuntimeError("Redis connection not established")
        return self.redis

    async def get(self, key: str) -> Optional[bytes]:
        client = self._client()
        try:
            return await client.get(key)
        except RedisError as e:
            logger.warning("Failed to read cache key", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        client = self._client()
        try:
            await client.set(key, value, ex=ttl)
            return True
        except RedisError as e:
            logger.warning("Failed to write cache key", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        client = self._client()
        try:
            return await client.delete(key) > 0
        except RedisError as e:
            logger.warning("Failed to delete cache key", key=key, error=str(e))
            return False

    async def exists(self, key: str) -> bool:
        client = self._client()
        try:
            return bool(await client.exists(key))
        except RedisError as e:
            logger.warning("Failed to check cache key", key=key, error=str(e))
            return False
