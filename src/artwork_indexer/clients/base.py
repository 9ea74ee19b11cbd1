"""Base client with common functionality"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from loguru import logger

from ..cache import CacheAdapter, MemoryCache
from ..config import ProviderConfig
from ..errors import Malformed, NotFound, ProviderError, ProviderUnavailable, RateLimited
from ..models import Blockchain, IndexMode, Page
from ..rate_limiter import AdaptiveRateLimiter
from ..security import redact_secrets

# Stored in the cache for lookups that came back empty
_MISS = {"__miss__": True}


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class BaseProviderClient(ABC):
    """Base class for provider clients: pacing, HTTP error mapping and lookup caching"""

    blockchain: Blockchain = Blockchain.ETHEREUM

    def __init__(
        self,
        config: ProviderConfig,
        limiter: Optional[AdaptiveRateLimiter] = None,
        cache: Optional[CacheAdapter] = None,
        negative_cache_ttl: int = 60,
    ):
        self.config = config
        self.name = config.name
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self.page_size = config.page_size
        self.limiter = limiter or AdaptiveRateLimiter(config.rate_limiter, name=config.name)
        self.cache = cache or MemoryCache()
        self.negative_cache_ttl = negative_cache_ttl

    def _default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    def _check_payload(self, payload: Any) -> Any:
        """Hook for providers that report errors inside a 200 response"""
        return payload

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """One HTTP round trip, with status codes mapped onto the error taxonomy"""
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
            try:
                async with session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=json_data,
                    headers=headers,
                ) as response:
                    if response.status == 404:
                        raise NotFound(f"{self.name}: not found: {url}", provider=self.name, status=404)
                    if response.status == 429:
                        raise RateLimited(
                            f"{self.name}: 429 Too Many Requests",
                            provider=self.name,
                            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
                        )
                    if response.status >= 500:
                        raise ProviderUnavailable(
                            f"{self.name}: HTTP {response.status}", provider=self.name, status=response.status
                        )
                    if response.status >= 400:
                        body = await response.text()
                        raise ProviderError(
                            f"{self.name}: HTTP {response.status}: {body[:200]}",
                            provider=self.name,
                            status=response.status,
                        )
                    try:
                        return await response.json(content_type=None)
                    except (json.JSONDecodeError, aiohttp.ContentTypeError) as e:
                        raise Malformed(f"{self.name}: response is not JSON: {e}", provider=self.name) from e
            except asyncio.TimeoutError as e:
                raise ProviderUnavailable(f"{self.name}: request timed out: {url}", provider=self.name) from e
            except aiohttp.ClientError as e:
                logger.error(f"Request failed: {e}")
                raise ProviderUnavailable(f"{self.name}: {e}", provider=self.name) from e

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Make a paced request; 429s and network failures are retried by the limiter"""
        url = endpoint if endpoint.startswith("http") else f"{self.base_url}/{endpoint.lstrip('/')}"
        merged_headers = self._default_headers()
        if headers:
            merged_headers.update(headers)
        logger.debug(f"[{self.name}] {method} {url} params={params} headers={redact_secrets(merged_headers)}")

        async def attempt():
            payload = await self._send(method, url, params=params, json_data=json_data, headers=merged_headers)
            return self._check_payload(payload)

        return await self.limiter.execute(attempt)

    async def _cached_lookup(
        self,
        key: str,
        loader: Callable[[], Awaitable[Optional[Dict[str, Any]]]],
    ) -> Optional[Dict[str, Any]]:
        """Enrichment lookup through the cache; misses are remembered for a shorter TTL"""
        cache_key = f"{self.name}:{key}"
        cached = await self.cache.get_cache(cache_key)
        if cached is not None:
            return None if cached == _MISS else cached

        try:
            value = await loader()
        except NotFound:
            value = None

        if value:
            await self.cache.set_cache(cache_key, value)
        else:
            await self.cache.set_cache(cache_key, _MISS, ttl=self.negative_cache_ttl)
        return value or None

    async def close(self) -> None:
        await self.cache.close()

    @abstractmethod
    async def fetch_page(
        self,
        identity: str,
        mode: IndexMode = IndexMode.OWNED,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page:
        """One page of raw token records for a wallet"""
        pass

    @abstractmethod
    async def fetch_item(self, contract_address: str, token_id: str) -> Optional[Dict[str, Any]]:
        """Single raw token record, or None when it does not exist"""
        pass

    @abstractmethod
    async def fetch_collection(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Collection enrichment by slug or contract"""
        pass

    @abstractmethod
    async def fetch_account(self, address: str) -> Optional[Dict[str, Any]]:
        """Creator/holder profile enrichment"""
        pass
