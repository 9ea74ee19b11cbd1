"""Cache adapters for provider enrichment lookups"""

from .base import CacheAdapter
from .memory import MemoryCache
from .redis_adapter import RedisCache

__all__ = ["CacheAdapter", "MemoryCache", "RedisCache", "get_cache_adapter"]


def get_cache_adapter(config) -> CacheAdapter:
    """Pick the cache adapter the config asks for"""
    if config.cache_type == "redis" and config.redis_url:
        return RedisCache(config.redis_url, default_ttl=config.cache_ttl)
    return MemoryCache(default_ttl=config.cache_ttl)
