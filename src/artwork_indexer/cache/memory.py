"""In-memory cache adapter"""

import asyncio
import time
from typing import Any, NamedTuple, Optional

from cachetools import TLRUCache

from .base import CacheAdapter


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _time_to_use(key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCache(CacheAdapter):
    """Process-local cache; each entry expires after its own TTL"""

    def __init__(self, default_ttl: int = 300, max_size: int = 10000, timer=time.monotonic):
        self.default_ttl = default_ttl
        self.cache: TLRUCache = TLRUCache(maxsize=max_size, ttu=_time_to_use, timer=timer)
        self._lock = asyncio.Lock()

    async def get_cache(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self.cache.get(key)
            return entry.value if entry is not None else None

    async def set_cache(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        async with self._lock:
            self.cache[key] = _Entry(value, ttl if ttl is not None else self.default_ttl)

    async def delete_cache(self, key: str) -> None:
        async with self._lock:
            self.cache.pop(key, None)

    def __len__(self) -> int:
        return len(self.cache)
