"""Storage collaborators for media uploads and indexed records"""

from .base import ArtworkStore, MediaStore
from .memory import InMemoryArtworkStore, InMemoryMediaStore

__all__ = ["ArtworkStore", "InMemoryArtworkStore", "InMemoryMediaStore", "MediaStore"]
