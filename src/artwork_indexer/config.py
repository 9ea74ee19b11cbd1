"""
Configuration management for the artwork indexer
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


DEFAULT_IPFS_GATEWAYS = [
    "https://ipfs.io/ipfs/",
    "https://dweb.link/ipfs/",
    "https://nftstorage.link/ipfs/",
    "https://gateway.pinata.cloud/ipfs/",
]
DEFAULT_ARWEAVE_GATEWAY = "https://arweave.net/"
DEFAULT_ONCHFS_GATEWAY = "https://onchfs.fxhash2.xyz/"


@dataclass
class RateLimiterConfig:
    """Pacing profile for one provider"""
    base_delay_ms: float = 1000
    max_delay_ms: float = 10000
    backoff_multiplier: float = 1.5
    max_retries: int = 5
    batch_size: int = 10
    adaptive_threshold: int = 5
    decrease_factor: float = 0.8

    def __post_init__(self):
        if self.base_delay_ms < 0 or self.max_delay_ms < self.base_delay_ms:
            raise ConfigurationError(
                f"Invalid delay bounds: base={self.base_delay_ms} max={self.max_delay_ms}"
            )
        if self.backoff_multiplier <= 1:
            raise ConfigurationError("backoff_multiplier must be greater than 1")
        if self.max_retries < 0 or self.adaptive_threshold < 1:
            raise ConfigurationError("max_retries must be >= 0 and adaptive_threshold >= 1")

    @classmethod
    def default(cls) -> "RateLimiterConfig":
        return cls()

    @classmethod
    def workflow(cls) -> "RateLimiterConfig":
        """Gentler profile used by long-running indexing jobs"""
        return cls(batch_size=5, adaptive_threshold=3)

    @classmethod
    def media(cls) -> "RateLimiterConfig":
        """Gateway fetches and uploads: short delays, small retry budget"""
        return cls(base_delay_ms=0, max_delay_ms=4000, backoff_multiplier=2.0, max_retries=2)


@dataclass
class ProviderConfig:
    """API configuration for a provider"""
    name: str
    base_url: str
    api_key: Optional[str] = None
    timeout: int = 30
    page_size: int = 50
    rate_limiter: RateLimiterConfig = field(default_factory=RateLimiterConfig.workflow)


@dataclass
class BackoffPolicy:
    """Page-level backoff used by the workflow between failed page fetches"""
    base_ms: float
    factor: float
    cap_ms: float
    max_consecutive_failures: int = 10
    min_page_interval_ms: float = 0

    def delay_for(self, failures: int) -> float:
        return min(self.base_ms * self.factor ** max(failures - 1, 0), self.cap_ms)


@dataclass
class MediaConfig:
    """Media resolution and transcoding settings"""
    ipfs_gateways: List[str] = field(default_factory=lambda: list(DEFAULT_IPFS_GATEWAYS))
    arweave_gateway: str = DEFAULT_ARWEAVE_GATEWAY
    onchfs_gateway: str = DEFAULT_ONCHFS_GATEWAY
    gateway_timeout: float = 10
    http_timeout: float = 15
    arweave_timeout: float = 30
    size_budget_bytes: int = 25 * 1024 * 1024
    max_download_bytes: int = 200 * 1024 * 1024
    initial_quality: int = 85
    min_quality: int = 50
    quality_step: int = 10
    shrink_factor: float = 0.9
    max_resize_attempts: int = 10
    aspect_tolerance: float = 0.01
    upload_retries: int = 3
    resolve_hosts: bool = True
    ffprobe_path: str = "ffprobe"
    rate_limiter: RateLimiterConfig = field(default_factory=RateLimiterConfig.media)


@dataclass
class Config:
    """Main configuration class"""

    opensea_api_key: Optional[str] = None
    opensea_base_url: str = "https://api.opensea.io/api/v2"
    objkt_graphql_url: str = "https://data.objkt.com/v3/graphql"

    # Cache settings
    cache_ttl: int = 300  # 5 minutes
    negative_cache_ttl: int = 60
    cache_type: str = "memory"  # "memory" or "redis"
    redis_url: Optional[str] = None

    # Request settings
    timeout: int = 30
    page_size: int = 50
    max_pages: int = 200
    log_level: str = "INFO"

    media: MediaConfig = field(default_factory=MediaConfig)

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """Load configuration from environment variables (and .env if present)"""
        load_dotenv(env_file or Path.cwd() / ".env")

        def get_list(key_name: str) -> List[str]:
            """Comma-separated values"""
            raw = os.getenv(key_name, "")
            return [item.strip() for item in raw.split(",") if item.strip()]

        media = MediaConfig()
        gateways = get_list("IPFS_GATEWAYS")
        if gateways:
            media.ipfs_gateways = [g if g.endswith("/") else f"{g}/" for g in gateways]
        if os.getenv("MEDIA_SIZE_BUDGET_MB"):
            media.size_budget_bytes = int(float(os.environ["MEDIA_SIZE_BUDGET_MB"]) * 1024 * 1024)

        return cls(
            opensea_api_key=os.getenv("OPENSEA_API_KEY") or None,
            objkt_graphql_url=os.getenv("OBJKT_GRAPHQL_URL", "https://data.objkt.com/v3/graphql"),
            cache_ttl=int(os.getenv("CACHE_TTL", "300")),
            cache_type=os.getenv("CACHE_TYPE", "memory"),
            redis_url=os.getenv("REDIS_URL"),
            timeout=int(os.getenv("TIMEOUT", "30")),
            page_size=int(os.getenv("PAGE_SIZE", "50")),
            max_pages=int(os.getenv("MAX_PAGES", "200")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            media=media,
        )

    def get_opensea_config(self) -> ProviderConfig:
        """OpenSea API config"""
        if not self.opensea_api_key:
            raise ConfigurationError("OpenSea API key not configured (OPENSEA_API_KEY)")
        return ProviderConfig(
            name="opensea",
            base_url=self.opensea_base_url,
            api_key=self.opensea_api_key,
            timeout=self.timeout,
            page_size=min(self.page_size, 200),
        )

    def get_objkt_config(self) -> ProviderConfig:
        """objkt GraphQL config (no key required)"""
        return ProviderConfig(
            name="objkt",
            base_url=self.objkt_graphql_url,
            timeout=self.timeout,
            page_size=self.page_size,
        )
