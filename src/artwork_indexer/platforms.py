"""
Declared platform tables: generative platforms, shared minting contracts,
placeholder media and contracts that never hold artwork
"""

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

from .models import Blockchain, Platform


# objkt wrapped tez (FA2 wrapper around XTZ); fungible, never artwork
WRAPPED_TEZ_CONTRACT = "KT1TjnZYs5CGLbmV6yuW169P8Pnr9BiVwwjz"

EXCLUDED_CONTRACTS: Dict[Blockchain, FrozenSet[str]] = {
    Blockchain.TEZOS: frozenset({WRAPPED_TEZ_CONTRACT}),
}


@dataclass(frozen=True)
class PlatformInfo:
    platform: Platform
    name: str
    generative: bool = False
    shared: bool = False
    generator_template: Optional[str] = None


ART_BLOCKS = PlatformInfo(
    Platform.ART_BLOCKS,
    "Art Blocks",
    generative=True,
    generator_template="https://generator.artblocks.io/{contract}/{token_id}",
)
FXHASH = PlatformInfo(Platform.FXHASH, "fxhash", generative=True)
FXHASH_ISSUER = PlatformInfo(Platform.FXHASH, "fxhash", generative=True, shared=True)
HIC_ET_NUNC = PlatformInfo(Platform.HIC_ET_NUNC, "hic et nunc", shared=True)
VERSUM = PlatformInfo(Platform.VERSUM, "Versum", shared=True)
OPENSEA_SHARED = PlatformInfo(Platform.OPENSEA_SHARED, "OpenSea Shared Storefront", shared=True)

# EVM addresses are stored lower-cased; Tezos addresses are case-sensitive
CONTRACT_PLATFORMS: Dict[Blockchain, Dict[str, PlatformInfo]] = {
    Blockchain.ETHEREUM: {
        "0x059edd72cd353df5106d2b9cc5ab83a52287ac3a": ART_BLOCKS,
        "0xa7d8d9ef8d8ce8992df33d8b8cf4aebabd5bd270": ART_BLOCKS,
        "0x99a9b7c1116f9ceeb1652de04d5969cce509b069": ART_BLOCKS,
        "0x0e6a21cf97d6a9d9d8f794d26dfb3e3baa49f3ac": ART_BLOCKS,
        "0x495f947276749ce646f68ac8c248420045cb7b5e": OPENSEA_SHARED,
        "0xa5409ec958c83c3f309868babaca7c86dcb077c1": OPENSEA_SHARED,
    },
    Blockchain.POLYGON: {
        "0x2953399124f0cbb46d2cbacd8a89cf0599974963": OPENSEA_SHARED,
    },
    Blockchain.TEZOS: {
        "KT1U6EHmNxJTkvaWJ4ThczG4FSDaHC21ssvi": FXHASH_ISSUER,
        "KT1KEa8z6vWXDJrVqtMrAeDVzsvxat3kHaCE": FXHASH,
        "KT1AaaBSo5AE6Eo8fpEN5xhCD4w3kHStafxk": FXHASH,
        "KT1XCoGnfupWk7Sp8536EfrxcP73LmT68Nyr": FXHASH,
        "KT1RJ6PbjHpwc3M5rw5s2Nbmefwbuwbdxton": HIC_ET_NUNC,
        "KT1LjmAdYQCLBjwv4S2oFkEzyHVkomAf5MrW": VERSUM,
    },
}

# Order matters only for reporting; any hit flags the collection
GENERATIVE_KEYWORDS: Tuple[Tuple[str, Platform], ...] = (
    ("art blocks", Platform.ART_BLOCKS),
    ("artblocks", Platform.ART_BLOCKS),
    ("fx(hash)", Platform.FXHASH),
    ("fxhash", Platform.FXHASH),
    ("async art", Platform.GENERIC),
    ("bright moments", Platform.GENERIC),
    ("generative", Platform.GENERIC),
    ("algorithmic", Platform.GENERIC),
    ("procedural", Platform.GENERIC),
    ("qql", Platform.GENERIC),
    ("fidenza", Platform.ART_BLOCKS),
    ("gen.art", Platform.GENERIC),
)

# URLs that point at executable/interactive content
GENERATOR_URL_PATTERNS = (
    re.compile(r"\.html?(\?|#|$)", re.IGNORECASE),
    re.compile(r"artblocks\.io/generator", re.IGNORECASE),
    re.compile(r"generator\.artblocks\.io", re.IGNORECASE),
    re.compile(r"fxhash\.xyz.*/gentk", re.IGNORECASE),
    re.compile(r"[?&]fxhash=", re.IGNORECASE),
    re.compile(r"^onchfs://", re.IGNORECASE),
    re.compile(r"generator", re.IGNORECASE),
    re.compile(r"interactive", re.IGNORECASE),
)

# Generic images some platforms use when an artist never set a thumbnail
PLACEHOLDER_CIDS = frozenset({
    "QmNrhZHUaEqxhyLfqoq1mtHSipkWHeT31LNHb1QEbDHgnc",  # hic et nunc / teia circle
})
PLACEHOLDER_URL_FRAGMENTS = (
    "opensea-static/placeholder",
    "default-image",
    "placeholder.png",
)


def lookup_platform(contract_address: Optional[str], blockchain: Blockchain) -> Optional[PlatformInfo]:
    """Contract → platform table lookup"""
    if not contract_address:
        return None
    table = CONTRACT_PLATFORMS.get(blockchain, {})
    key = contract_address.lower() if blockchain.is_evm else contract_address
    return table.get(key)


def match_generative_keyword(name: Optional[str]) -> Optional[Platform]:
    if not name:
        return None
    lowered = name.lower()
    for keyword, platform in GENERATIVE_KEYWORDS:
        if keyword in lowered:
            return platform
    return None


def is_generative(contract_address: Optional[str], collection_name: Optional[str], blockchain: Blockchain) -> bool:
    info = lookup_platform(contract_address, blockchain)
    if info and info.generative:
        return True
    return match_generative_keyword(collection_name) is not None


def is_shared_contract(contract_address: Optional[str], blockchain: Blockchain) -> bool:
    info = lookup_platform(contract_address, blockchain)
    return bool(info and info.shared)


def is_excluded_contract(contract_address: Optional[str], blockchain: Blockchain) -> bool:
    return bool(contract_address) and contract_address in EXCLUDED_CONTRACTS.get(blockchain, frozenset())


def resolve_platform(contract_address: Optional[str], collection_name: Optional[str], blockchain: Blockchain) -> Platform:
    info = lookup_platform(contract_address, blockchain)
    if info:
        return info.platform
    return match_generative_keyword(collection_name) or Platform.GENERIC


def looks_like_generator(url: Optional[str]) -> bool:
    if not url:
        return False
    return any(pattern.search(url) for pattern in GENERATOR_URL_PATTERNS)


def is_placeholder(url: Optional[str]) -> bool:
    if not url:
        return False
    if any(cid in url for cid in PLACEHOLDER_CIDS):
        return True
    lowered = url.lower()
    return any(fragment in lowered for fragment in PLACEHOLDER_URL_FRAGMENTS)


def build_generator_url(contract_address: str, token_id: str, blockchain: Blockchain) -> Optional[str]:
    """Render endpoint for platforms that expose one"""
    info = lookup_platform(contract_address, blockchain)
    if info and info.generator_template:
        return info.generator_template.format(contract=contract_address.lower(), token_id=token_id)
    return None
