"""Redis cache adapter (optional, install the ``redis`` extra)"""

import json
from typing import Any, Optional

from loguru import logger

try:
    import redis.asyncio as redis
    REDIS_AVAILABLE = True
except ImportError:
    REDIS_AVAILABLE = False
    redis = None

from .base import CacheAdapter


class RedisCache(CacheAdapter):
    """Shared cache for enrichment lookups across worker processes"""

    def __init__(self, redis_url: str, default_ttl: int = 300, prefix: str = "artwork-indexer:", client: Any = None):
        if client is None and not REDIS_AVAILABLE:
            raise ImportError("redis package not installed. Install with: pip install artwork-indexer[redis]")
        if client is None and not redis_url:
            raise ValueError("Redis URL not configured")
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.prefix = prefix
        self.redis_client: Optional[Any] = client

    async def _ensure_connected(self):
        if self.redis_client is None:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
        return self.redis_client

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get_cache(self, key: str) -> Optional[Any]:
        try:
            client = await self._ensure_connected()
            value = await client.get(self._key(key))
            return json.loads(value) if value else None
        except Exception as e:
            # A cache outage only costs an extra provider lookup
            logger.warning(f"Redis get_cache error for {key}: {e}")
            return None

    async def set_cache(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            client = await self._ensure_connected()
            await client.setex(self._key(key), ttl or self.default_ttl, json.dumps(value, default=str))
        except Exception as e:
            logger.warning(f"Redis set_cache error for {key}: {e}")

    async def delete_cache(self, key: str) -> None:
        try:
            client = await self._ensure_connected()
            await client.delete(self._key(key))
        except Exception as e:
            logger.warning(f"Redis delete_cache error for {key}: {e}")

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
