"""
Artwork Indexer - NFT wallet indexing into canonical artwork records
"""

__version__ = "1.0.0"

from .models import Blockchain, CanonicalArtwork, IndexMode, Provider
from .transformer import NFTTransformer
from .workflow import CancellationToken, IndexingWorkflow, IndexJob, JobState

__all__ = [
    "Blockchain",
    "CanonicalArtwork",
    "CancellationToken",
    "IndexJob",
    "IndexMode",
    "IndexingWorkflow",
    "JobState",
    "NFTTransformer",
    "Provider",
]
