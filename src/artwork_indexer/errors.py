"""Exception hierarchy for the indexing pipeline"""

import asyncio
from typing import Iterable, Optional

import aiohttp


class IndexerError(Exception):
    """Base class for all indexer errors"""


class ConfigurationError(IndexerError):
    """Missing or invalid configuration"""


class InvalidAddress(IndexerError):
    """Wallet or contract address failed validation"""

    def __init__(self, address: str, blockchain: str):
        self.address = address
        self.blockchain = blockchain
        super().__init__(f"Invalid {blockchain} address: {address!r}")


class ProviderError(IndexerError):
    """Error reported by (or while talking to) a metadata provider"""

    def __init__(self, message: str, provider: Optional[str] = None, status: Optional[int] = None):
        self.provider = provider
        self.status = status
        super().__init__(message)


class NotFound(ProviderError):
    """404-equivalent; callers turn this into None"""


class Malformed(ProviderError):
    """Unexpected response shape"""


class RateLimited(ProviderError):
    """Provider throttled the request"""

    def __init__(
        self,
        message: str = "Rate limited",
        provider: Optional[str] = None,
        status: Optional[int] = 429,
        retry_after: Optional[float] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, provider=provider, status=status)


class TransientError(ProviderError):
    """Recoverable failure that is worth retrying with the same delay"""


class ProviderUnavailable(TransientError):
    """Network failure, timeout or 5xx response"""


class UploadError(TransientError):
    """Storage collaborator rejected or failed an upload"""


class RateLimitExhausted(ProviderError):
    """Retry budget ran out while the provider kept throttling"""

    def __init__(self, message: str, provider: Optional[str] = None, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message, provider=provider, status=429)


class MissingRequiredFields(IndexerError):
    """Raw record cannot be given an identity"""

    def __init__(self, missing: Iterable[str], source: Optional[str] = None):
        self.missing = list(missing)
        self.source = source
        super().__init__(f"Record from {source or 'unknown source'} is missing: {', '.join(self.missing)}")


class MediaError(IndexerError):
    """Media URI could not be turned into usable bytes"""

    FETCH_ERROR = "fetch_error"
    UNSUPPORTED_TYPE = "unsupported_type"
    TYPE_DETECTION_ERROR = "type_detection_error"

    def __init__(self, kind: str, uri: str, reason: str = ""):
        self.kind = kind
        self.uri = uri
        self.reason = reason
        super().__init__(f"{kind} for {uri[:120]}: {reason}")


class FetchError(MediaError):
    def __init__(self, uri: str, reason: str = ""):
        super().__init__(MediaError.FETCH_ERROR, uri, reason)


class UnsupportedType(MediaError):
    def __init__(self, uri: str, mime: Optional[str] = None):
        self.mime = mime
        super().__init__(MediaError.UNSUPPORTED_TYPE, uri, f"mime={mime}")


def is_rate_limit_error(error: BaseException) -> bool:
    """Detect throttling across providers (status code or message text)"""
    if isinstance(error, (RateLimited, RateLimitExhausted)):
        return True
    if getattr(error, "status", None) == 429:
        return True
    if isinstance(error, IndexerError):
        return False
    message = str(error).lower()
    return "429" in message or "rate limit" in message or "too many requests" in message


def is_transient_error(error: BaseException) -> bool:
    """Errors the rate limiter is allowed to retry"""
    if isinstance(error, RateLimitExhausted):
        return False
    if is_rate_limit_error(error):
        return True
    if isinstance(error, TransientError):
        return True
    if isinstance(error, (NotFound, Malformed, MissingRequiredFields, MediaError)):
        return False
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status >= 500
    return isinstance(error, (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError))
