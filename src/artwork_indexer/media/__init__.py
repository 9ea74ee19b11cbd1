"""Media resolution, type detection and re-encoding"""

from .detect import DetectedType, detect_type
from .fetcher import FetchedMedia, MediaFetcher
from .pipeline import MediaPipeline, build_filename, build_tags
from .transcode import TranscodeResult, fit_image_to_budget
from .uris import ClassifiedUri, UriKind, classify_uri

__all__ = [
    "ClassifiedUri",
    "DetectedType",
    "FetchedMedia",
    "MediaFetcher",
    "MediaPipeline",
    "TranscodeResult",
    "UriKind",
    "build_filename",
    "build_tags",
    "classify_uri",
    "detect_type",
    "fit_image_to_budget",
]
