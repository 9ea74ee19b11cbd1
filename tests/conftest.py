"""
Shared fixtures: no-op sleeps, sample provider records and generated images
"""

import io
import os
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from artwork_indexer.config import RateLimiterConfig
from artwork_indexer.rate_limiter import AdaptiveRateLimiter

WALLET_ETH = "0x1234567890abcdef1234567890abcdef12345678"
WALLET_TEZ = "tz1burnburnburnburnburnburnburjAYjjX"
FXHASH_ISSUER = "KT1U6EHmNxJTkvaWJ4ThczG4FSDaHC21ssvi"
HEN_CONTRACT = "KT1RJ6PbjHpwc3M5rw5s2Nbmefwbuwbdxton"
ART_BLOCKS_CONTRACT = "0xa7d8d9ef8d8ce8992df33d8b8cf4aebabd5bd270"
OPENSEA_SHARED_CONTRACT = "0x495f947276749ce646f68ac8c248420045cb7b5e"
CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


def make_image(width=64, height=48, fmt="PNG", noise=False) -> bytes:
    if noise:
        image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
    else:
        image = Image.new("RGB", (width, height), color=(200, 30, 90))
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_animated_gif(width=32, height=32) -> bytes:
    frames = [Image.new("RGB", (width, height), color=c) for c in ((255, 0, 0), (0, 0, 255))]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=100, loop=0)
    return buffer.getvalue()


@pytest.fixture
def sleep_mock():
    return AsyncMock()


@pytest.fixture
def limiter_config():
    return RateLimiterConfig(base_delay_ms=100, max_delay_ms=1000, backoff_multiplier=2.0, max_retries=3)


@pytest.fixture
def limiter(limiter_config, sleep_mock):
    return AdaptiveRateLimiter(limiter_config, name="test", sleep=sleep_mock)


@pytest.fixture
def opensea_nft():
    """Detail-shaped OpenSea v2 NFT"""
    return {
        "identifier": "42",
        "collection": "dreamscapes",
        "contract": "0xAbCdEf0123456789abcdef0123456789ABCDEF01",
        "token_standard": "erc721",
        "name": "Dreamscape #42",
        "description": "A quiet landscape",
        "image_url": "https://i.seadn.io/gcs/files/dreamscape-42.png",
        "display_image_url": "https://i.seadn.io/gcs/files/dreamscape-42.png?w=500",
        "display_animation_url": None,
        "metadata_url": f"ipfs://{CID}/42.json",
        "updated_at": "2024-01-01T00:00:00.000000",
        "creator": "0x9999999999999999999999999999999999999999",
        "traits": [
            {"trait_type": "Palette", "value": "Dusk"},
            {"trait_type": "palette", "value": "dusk"},
            {"trait_type": "Layers", "value": 7},
            {"trait_type": "Width", "value": 2000},
            {"trait_type": "Height", "value": 1000},
        ],
    }


@pytest.fixture
def fxhash_token():
    """objkt token minted through the fxhash issuer"""
    return {
        "token_id": "1337",
        "fa_contract": FXHASH_ISSUER,
        "name": "Noise Field #1337",
        "description": "Generative study",
        "display_uri": f"ipfs://{CID}/display.png",
        "thumbnail_uri": f"ipfs://{CID}/thumb.png",
        "artifact_uri": "onchfs://f1e2d3c4b5a6/?fxhash=oo123&fxiteration=1337",
        "mime": "application/x-directory",
        "supply": 1,
        "timestamp": "2023-05-04T10:20:30+00:00",
        "dimensions": {"display": {"dimensions": {"width": 1024, "height": 1024}}},
        "fa": {"contract": FXHASH_ISSUER, "name": "fxhash"},
        "creators": [
            {
                "creator_address": "tz1aRoaRhSpRYvFdyvgWLL6TGyRoGF51wDjM",
                "holder": {"address": "tz1aRoaRhSpRYvFdyvgWLL6TGyRoGF51wDjM", "alias": "noisemaker"},
            }
        ],
        "attributes": [
            {"attribute": {"name": "Density", "type": "string", "value": "High"}},
        ],
    }
