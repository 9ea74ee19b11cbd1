"""Storage collaborator interfaces"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..models import CanonicalArtwork, Collection, Creator, UploadResult


class MediaStore(ABC):
    """Where resolved media bytes end up"""

    @abstractmethod
    async def upload(self, data: bytes, base_name: str, mime: str, tags: Dict[str, str]) -> UploadResult:
        """Store bytes; raise UploadError on a retryable failure"""
        pass

    @abstractmethod
    async def find_by_tags(self, tags: Dict[str, str]) -> Optional[UploadResult]:
        """Previously uploaded media carrying all of ``tags``"""
        pass


class ArtworkStore(ABC):
    """Persistence for indexed records; every upsert returns the record id"""

    @abstractmethod
    async def upsert_creator(self, creator: Creator) -> str:
        pass

    @abstractmethod
    async def upsert_collection(self, collection: Collection) -> str:
        pass

    @abstractmethod
    async def upsert_artwork(
        self,
        artwork: CanonicalArtwork,
        creator_id: Optional[str] = None,
        collection_id: Optional[str] = None,
    ) -> str:
        pass
