"""
Media byte fetching with gateway fallback
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import aiohttp
from loguru import logger

from ..config import MediaConfig
from ..errors import FetchError, IndexerError, ProviderUnavailable, RateLimited
from ..rate_limiter import AdaptiveRateLimiter
from ..security import log_blocked_url, validate_url_safe
from .uris import ClassifiedUri, UriKind, classify_uri, decode_data_uri

MAX_REDIRECTS = 5
REDIRECT_STATUSES = (301, 302, 303, 307, 308)


@dataclass
class FetchedMedia:
    data: bytes
    content_type: Optional[str]
    source_url: str
    classified: ClassifiedUri


class MediaFetcher:
    """Downloads media bytes, trying each gateway candidate in order"""

    def __init__(self, config: Optional[MediaConfig] = None, limiter: Optional[AdaptiveRateLimiter] = None):
        self.config = config or MediaConfig()
        self.limiter = limiter or AdaptiveRateLimiter(self.config.rate_limiter, name="media")

    async def _check_redirect(self, url: str, location: Optional[str]) -> str:
        """Absolute redirect target, refused when it points at an internal host"""
        if not location:
            raise FetchError(url, "redirect without Location")
        target = urljoin(url, location)
        is_safe, reason = await asyncio.to_thread(validate_url_safe, target, self.config.resolve_hosts)
        if not is_safe:
            log_blocked_url(target, reason)
            raise FetchError(url, f"blocked redirect to {target}: {reason}")
        return target

    async def _download(self, url: str, timeout: float) -> Tuple[bytes, Optional[str]]:
        """One GET, following redirects hop by hop; statuses mapped onto the error taxonomy"""
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            target = url
            try:
                for _ in range(MAX_REDIRECTS + 1):
                    async with session.get(target, allow_redirects=False) as response:
                        if response.status in REDIRECT_STATUSES:
                            target = await self._check_redirect(target, response.headers.get("Location"))
                            continue
                        return await self._read(target, response)
            except asyncio.TimeoutError as e:
                raise ProviderUnavailable(f"timed out after {timeout}s: {url}", provider="media") from e
            except aiohttp.ClientError as e:
                raise ProviderUnavailable(f"{url}: {e}", provider="media") from e
        raise FetchError(url, f"more than {MAX_REDIRECTS} redirects")

    async def _read(self, url: str, response: aiohttp.ClientResponse) -> Tuple[bytes, Optional[str]]:
        if response.status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimited(
                f"gateway 429: {url}",
                provider="media",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status >= 500:
            raise ProviderUnavailable(f"gateway HTTP {response.status}: {url}", provider="media", status=response.status)
        if response.status >= 400:
            raise FetchError(url, f"HTTP {response.status}")

        declared = response.content_length
        if declared and declared > self.config.max_download_bytes:
            raise FetchError(url, f"content length {declared} exceeds limit")

        chunks: List[bytes] = []
        received = 0
        async for chunk in response.content.iter_chunked(64 * 1024):
            received += len(chunk)
            if received > self.config.max_download_bytes:
                raise FetchError(url, "download exceeds size limit")
            chunks.append(chunk)
        return b"".join(chunks), response.headers.get("Content-Type")

    async def fetch(self, uri: str) -> FetchedMedia:
        """
        Resolve ``uri`` to bytes

        Raises:
            FetchError: unusable URI, blocked host, or every candidate failed
        """
        classified = classify_uri(uri, self.config)

        if classified.kind == UriKind.DATA:
            data, mime = decode_data_uri(classified.original)
            return FetchedMedia(data=data, content_type=mime, source_url=classified.original, classified=classified)

        if classified.kind == UriKind.HTTP:
            is_safe, reason = await asyncio.to_thread(
                validate_url_safe, classified.original, self.config.resolve_hosts
            )
            if not is_safe:
                log_blocked_url(classified.original, reason)
                raise FetchError(classified.original, f"blocked: {reason}")

        errors = []
        for url in classified.candidates:
            try:
                data, content_type = await self.limiter.execute(
                    lambda url=url: self._download(url, classified.timeout)
                )
            except IndexerError as e:
                logger.warning(f"Media fetch failed via {url}: {e}")
                errors.append(str(e))
                continue
            if not data:
                errors.append(f"{url}: empty body")
                continue
            logger.debug(f"Fetched {len(data)} bytes from {url}")
            return FetchedMedia(data=data, content_type=content_type, source_url=url, classified=classified)

        raise FetchError(uri, f"all {len(classified.candidates)} candidates failed: {'; '.join(errors)[:300]}")
