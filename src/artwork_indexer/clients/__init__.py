"""API clients for NFT metadata providers"""

from .base import BaseProviderClient
from .objkt import ObjktClient
from .opensea import OpenSeaClient

__all__ = ["BaseProviderClient", "ObjktClient", "OpenSeaClient"]
