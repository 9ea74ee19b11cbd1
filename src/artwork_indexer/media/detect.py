"""
Content-type detection from bytes
"""

from dataclasses import dataclass
from typing import Optional

import filetype
from loguru import logger

from ..errors import MediaError, UnsupportedType

PASSTHROUGH_MIMES = {
    "text/html",
    "application/javascript",
    "text/javascript",
    "application/pdf",
}

EXTENSION_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/avif": "avif",
    "image/bmp": "bmp",
    "image/tiff": "tif",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "video/ogg": "ogv",
    "video/x-matroska": "mkv",
    "text/html": "html",
    "application/javascript": "js",
    "text/javascript": "js",
    "application/pdf": "pdf",
}

SNIFF_BYTES = 1024


@dataclass
class DetectedType:
    mime: str
    extension: str
    passthrough: bool = False

    @property
    def is_image(self) -> bool:
        return self.mime.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.mime.startswith("video/")


def _sniff_text(data: bytes) -> Optional[str]:
    head = data[:SNIFF_BYTES * 4].lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    if not head.startswith(b"<"):
        return None
    if b"<svg" in head and b"<html" not in head:
        return "image/svg+xml"
    if head.startswith(b"<!doctype html") or b"<html" in head:
        return "text/html"
    return None


def _from_header(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    mime = content_type.split(";", 1)[0].strip().lower()
    if not mime or mime in ("application/octet-stream", "binary/octet-stream", "text/plain"):
        return None
    return mime


def detect_type(data: bytes, uri: str, content_type: Optional[str] = None) -> DetectedType:
    """
    Determine what ``data`` really is

    Magic bytes win, then text sniffing for SVG/HTML, then the Content-Type
    header.

    Raises:
        UnsupportedType: recognised but neither image, video nor passthrough
        MediaError: type_detection_error when nothing identifies the bytes
    """
    if not data:
        raise MediaError(MediaError.TYPE_DETECTION_ERROR, uri, "no content")

    kind = filetype.guess(data)
    mime = kind.mime if kind else None
    if mime is None:
        mime = _sniff_text(data)
    if mime is None:
        mime = _from_header(content_type)
        if mime:
            logger.debug(f"Using Content-Type {mime} for {uri[:120]}")

    if mime is None:
        raise MediaError(MediaError.TYPE_DETECTION_ERROR, uri, "unrecognised content")

    extension = EXTENSION_BY_MIME.get(mime) or (kind.extension if kind else None) or mime.rsplit("/", 1)[-1]
    if mime in PASSTHROUGH_MIMES:
        return DetectedType(mime=mime, extension=extension, passthrough=True)
    if mime.startswith("image/") or mime.startswith("video/"):
        return DetectedType(mime=mime, extension=extension)
    raise UnsupportedType(uri, mime)
