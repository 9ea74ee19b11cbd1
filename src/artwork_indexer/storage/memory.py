"""In-memory storage collaborators"""

import asyncio
from typing import Dict, List, Optional, Tuple

from ..models import CanonicalArtwork, Collection, Creator, UploadResult
from ..utils import sha256_hex
from .base import ArtworkStore, MediaStore


class InMemoryMediaStore(MediaStore):
    """Keeps uploads in a dict keyed by a content-addressed URL"""

    def __init__(self, base_url: str = "memory://media/"):
        self.base_url = base_url
        self.objects: Dict[str, Tuple[bytes, str, Dict[str, str]]] = {}
        self.upload_calls = 0
        self._lock = asyncio.Lock()

    async def upload(self, data: bytes, base_name: str, mime: str, tags: Dict[str, str]) -> UploadResult:
        async with self._lock:
            self.upload_calls += 1
            url = f"{self.base_url}{sha256_hex(data)[:16]}/{base_name}"
            self.objects[url] = (data, mime, dict(tags))
            return UploadResult(url=url, mime=mime)

    async def find_by_tags(self, tags: Dict[str, str]) -> Optional[UploadResult]:
        async with self._lock:
            for url, (_, mime, stored_tags) in self.objects.items():
                if all(stored_tags.get(key) == value for key, value in tags.items()):
                    return UploadResult(url=url, mime=mime)
            return None


class InMemoryArtworkStore(ArtworkStore):
    """Upserts keyed by natural id; re-indexing the same wallet adds nothing"""

    def __init__(self):
        self.creators: Dict[str, Creator] = {}
        self.collections: Dict[str, Collection] = {}
        self.artworks: Dict[str, CanonicalArtwork] = {}
        self.links: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
        self._lock = asyncio.Lock()

    async def upsert_creator(self, creator: Creator) -> str:
        async with self._lock:
            self.creators[creator.address] = creator
            return creator.address

    async def upsert_collection(self, collection: Collection) -> str:
        collection_id = collection.contract_address or collection.slug
        async with self._lock:
            self.collections[collection_id] = collection
            return collection_id

    async def upsert_artwork(
        self,
        artwork: CanonicalArtwork,
        creator_id: Optional[str] = None,
        collection_id: Optional[str] = None,
    ) -> str:
        async with self._lock:
            self.artworks[artwork.uid] = artwork
            self.links[artwork.uid] = (creator_id, collection_id)
            return artwork.uid

    def list_artworks(self) -> List[CanonicalArtwork]:
        return list(self.artworks.values())
