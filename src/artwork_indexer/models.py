"""
Canonical Pydantic models for indexed artwork
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Blockchain(str, Enum):
    """Supported blockchain networks"""
    ETHEREUM = "ethereum"
    TEZOS = "tezos"
    POLYGON = "polygon"

    @property
    def is_evm(self) -> bool:
        return self in (Blockchain.ETHEREUM, Blockchain.POLYGON)

    @classmethod
    def from_string(cls, chain_str: str) -> "Blockchain":
        """Convert string to Blockchain enum"""
        chain_str = chain_str.lower().strip()
        mapping = {
            "eth": cls.ETHEREUM,
            "ethereum": cls.ETHEREUM,
            "tezos": cls.TEZOS,
            "xtz": cls.TEZOS,
            "tez": cls.TEZOS,
            "polygon": cls.POLYGON,
            "matic": cls.POLYGON,
        }
        if chain_str not in mapping:
            raise ValueError(f"Unsupported blockchain: {chain_str}")
        return mapping[chain_str]


class IndexMode(str, Enum):
    """Which token set of a wallet to index"""
    OWNED = "owned"
    CREATED = "created"


class Provider(str, Enum):
    """Metadata source a raw record came from"""
    OPENSEA = "opensea"
    OBJKT = "objkt"

    @property
    def default_blockchain(self) -> "Blockchain":
        return Blockchain.TEZOS if self == Provider.OBJKT else Blockchain.ETHEREUM


class Platform(str, Enum):
    """Known minting platforms"""
    ART_BLOCKS = "art_blocks"
    FXHASH = "fxhash"
    HIC_ET_NUNC = "hic_et_nunc"
    OPENSEA_SHARED = "opensea_shared"
    VERSUM = "versum"
    GENERIC = "generic"


class Dimensions(BaseModel):
    """Pixel dimensions; both sides strictly positive"""
    width: int
    height: int

    @field_validator("width", "height")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("dimensions must be positive")
        return value

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


class Attribute(BaseModel):
    """Normalized trait"""
    trait_type: str
    value: str


class Creator(BaseModel):
    """Artist/creator with optional profile enrichment"""
    address: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    profile_url: Optional[str] = None
    avatar_url: Optional[str] = None
    website_url: Optional[str] = None
    is_verified: bool = False
    twitter: Optional[str] = None
    instagram: Optional[str] = None
    discord: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)
    resolution_source: Optional[str] = None

    @property
    def is_enriched(self) -> bool:
        return any([self.username, self.display_name, self.avatar_url, self.bio])


class Collection(BaseModel):
    """Collection the token belongs to; slug falls back to the contract"""
    slug: str
    title: Optional[str] = None
    description: Optional[str] = None
    contract_address: Optional[str] = None
    website_url: Optional[str] = None
    discord_url: Optional[str] = None
    telegram_url: Optional[str] = None
    image_url: Optional[str] = None
    banner_image_url: Optional[str] = None
    is_generative_art: bool = False
    is_shared_contract: bool = False
    platform: Platform = Platform.GENERIC

    # Marketplace stats
    floor_price: Optional[float] = None
    total_supply: Optional[int] = None
    mint_start: Optional[datetime] = None
    mint_end: Optional[datetime] = None
    project_number: Optional[int] = None


class CanonicalArtwork(BaseModel):
    """Provider-agnostic artwork record"""

    model_config = ConfigDict(use_enum_values=False)

    # Identity
    contract_address: str
    token_id: str
    blockchain: Blockchain

    # Descriptive
    title: Optional[str] = None
    description: Optional[str] = None

    # Media
    image_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    animation_url: Optional[str] = None
    generator_url: Optional[str] = None
    metadata_url: Optional[str] = None

    # Technical
    token_standard: Optional[str] = None
    mime: Optional[str] = None
    symbol: Optional[str] = None
    supply: int = 1
    dimensions: Optional[Dimensions] = None
    mint_date: Optional[datetime] = None

    attributes: List[Attribute] = Field(default_factory=list)
    features: Dict[str, Any] = Field(default_factory=dict)

    creator: Optional[Creator] = None
    collection: Collection
    source: Optional[Provider] = None

    @field_validator("supply")
    @classmethod
    def _supply_at_least_one(cls, value: int) -> int:
        return value if value >= 1 else 1

    @property
    def uid(self) -> str:
        return f"{self.blockchain.value}:{self.contract_address}:{self.token_id}"

    @property
    def has_media(self) -> bool:
        return bool(self.image_url or self.animation_url or self.generator_url)


class MediaFetchResult(BaseModel):
    """Bytes resolved for one media URI"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: bytes = Field(repr=False)
    mime: str
    filename: str
    source_url: str
    dimensions: Optional[Dimensions] = None
    passthrough: bool = False
    stored_url: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


class UploadResult(BaseModel):
    """What the storage collaborator reports after an upload"""
    url: str
    mime: str
    dimensions: Optional[Dimensions] = None


class Page(BaseModel):
    """One page of raw provider records"""
    records: List[Dict[str, Any]] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False
    skipped: int = 0
