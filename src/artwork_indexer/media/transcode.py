"""
Image re-encoding to fit a byte budget
"""

import io
from dataclasses import dataclass
from typing import Optional

from loguru import logger
from PIL import Image, UnidentifiedImageError

from ..config import MediaConfig
from ..errors import MediaError
from ..models import Dimensions

WEB_FRIENDLY_MIMES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
SKIP_MIMES = {"image/svg+xml"}


@dataclass
class TranscodeResult:
    data: bytes
    mime: str
    dimensions: Optional[Dimensions] = None
    transcoded: bool = False

    @property
    def size(self) -> int:
        return len(self.data)


def _open(data: bytes, source: str) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise MediaError(MediaError.TYPE_DETECTION_ERROR, source, f"unreadable image: {e}")
    return image


def read_image_dimensions(data: bytes) -> Optional[Dimensions]:
    """Pixel size of an image, or None when Pillow cannot read it"""
    try:
        with Image.open(io.BytesIO(data)) as image:
            width, height = image.size
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug(f"Could not read image dimensions: {e}")
        return None
    if width <= 0 or height <= 0:
        return None
    return Dimensions(width=width, height=height)


def is_animated(data: bytes) -> bool:
    try:
        with Image.open(io.BytesIO(data)) as image:
            return bool(getattr(image, "is_animated", False))
    except (UnidentifiedImageError, OSError, ValueError):
        return False


def _encode_webp(image: Image.Image, quality: int) -> bytes:
    if image.mode not in ("RGB", "RGBA"):
        has_alpha = image.mode in ("LA", "PA") or (image.mode == "P" and "transparency" in image.info)
        image = image.convert("RGBA" if has_alpha else "RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", quality=quality, method=4)
    return buffer.getvalue()


def _quality_steps(config: MediaConfig):
    quality = config.initial_quality
    while quality > config.min_quality:
        yield quality
        quality -= config.quality_step
    yield config.min_quality


def fit_image_to_budget(
    data: bytes,
    mime: str,
    budget_bytes: int,
    config: Optional[MediaConfig] = None,
    source: str = "<image>",
) -> TranscodeResult:
    """
    Re-encode an image to WebP until it fits ``budget_bytes``

    Quality is stepped down first, then the image is shrunk. When nothing
    fits, the smallest attempt is returned. SVG and animated images are
    returned untouched.

    Raises:
        MediaError: Pillow cannot decode the bytes
    """
    config = config or MediaConfig()

    if mime in SKIP_MIMES:
        return TranscodeResult(data=data, mime=mime)
    if is_animated(data):
        logger.debug(f"Keeping animated {mime} as-is: {source[:120]}")
        return TranscodeResult(data=data, mime=mime, dimensions=read_image_dimensions(data))

    image = _open(data, source)
    original_dims = Dimensions(width=image.width, height=image.height)

    if len(data) <= budget_bytes and mime in WEB_FRIENDLY_MIMES:
        return TranscodeResult(data=data, mime=mime, dimensions=original_dims)

    best = TranscodeResult(data=data, mime=mime, dimensions=original_dims)

    for quality in _quality_steps(config):
        encoded = _encode_webp(image, quality)
        logger.debug(f"WebP q={quality}: {len(encoded)} bytes (budget {budget_bytes})")
        if len(encoded) < best.size or best.mime != "image/webp":
            best = TranscodeResult(data=encoded, mime="image/webp", dimensions=original_dims, transcoded=True)
        if len(encoded) <= budget_bytes:
            return best

    ratio = original_dims.aspect_ratio
    width, height = image.width, image.height
    for attempt in range(1, config.max_resize_attempts + 1):
        # scale from the original so rounding does not compound
        new_width = max(1, round(original_dims.width * config.shrink_factor**attempt))
        new_height = max(1, round(new_width / ratio))
        new_ratio = new_width / new_height
        if abs(new_ratio - ratio) / ratio > config.aspect_tolerance:
            logger.warning(
                f"Stopping resize of {source[:120]}: ratio {ratio:.4f} -> {new_ratio:.4f} exceeds tolerance"
            )
            break
        logger.info(
            f"Resize attempt {attempt}: {width}x{height} -> {new_width}x{new_height} "
            f"(ratio {ratio:.4f} -> {new_ratio:.4f})"
        )
        width, height = new_width, new_height
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        encoded = _encode_webp(resized, config.min_quality)
        if len(encoded) < best.size:
            best = TranscodeResult(
                data=encoded,
                mime="image/webp",
                dimensions=Dimensions(width=width, height=height),
                transcoded=True,
            )
        if len(encoded) <= budget_bytes:
            return best

    logger.warning(f"Could not fit {source[:120]} into {budget_bytes} bytes; using smallest attempt ({best.size})")
    return best
