"""
Media resolution pipeline: fetch, detect, measure, re-encode, upload
"""

import asyncio
from dataclasses import replace
from typing import Any, Dict, Optional

from loguru import logger

from ..config import MediaConfig
from ..errors import MediaError, ProviderUnavailable, RateLimitExhausted, UploadError
from ..models import Blockchain, CanonicalArtwork, MediaFetchResult
from ..rate_limiter import AdaptiveRateLimiter
from ..storage import MediaStore
from ..utils import sha256_hex, url_basename
from .detect import detect_type
from .fetcher import MediaFetcher
from .probe import probe_video_dimensions
from .transcode import fit_image_to_budget, read_image_dimensions

# Fields resolved per artwork, in the order they are processed
MEDIA_FIELDS = ("image_url", "thumbnail_url", "animation_url")

MAX_TAGS = 6


def build_filename(uri: str, extension: str, data: bytes) -> str:
    stem = url_basename(uri)
    if not stem or len(stem) > 120:
        stem = sha256_hex(data)
    return f"{stem}.{extension}"


def build_tags(
    base_name: str,
    mime: str,
    contract_address: str,
    token_id: str,
    blockchain: Blockchain,
    source: Optional[str] = None,
) -> Dict[str, str]:
    tags = {
        "mediaHash": sha256_hex(f"{base_name}::{mime}"),
        "contractAddr": contract_address,
        "tokenID": str(token_id),
        "blockchain": blockchain.value,
    }
    if source:
        tags["source"] = source
    return dict(list(tags.items())[:MAX_TAGS])


class MediaPipeline:
    """
    Turns media URIs from token metadata into stored, storage-ready files

    Every network call is paced by a limiter: gateway fetches by the
    fetcher's, uploads by a separate limiter whose retry budget is
    ``MediaConfig.upload_retries``.
    """

    def __init__(
        self,
        config: Optional[MediaConfig] = None,
        media_store: Optional[MediaStore] = None,
        fetcher: Optional[MediaFetcher] = None,
        upload_limiter: Optional[AdaptiveRateLimiter] = None,
    ):
        self.config = config or MediaConfig()
        self.media_store = media_store
        self.fetcher = fetcher or MediaFetcher(self.config)
        self.upload_limiter = upload_limiter or AdaptiveRateLimiter(
            replace(self.config.rate_limiter, max_retries=self.config.upload_retries),
            name="media-upload",
        )

    async def resolve_media(self, uri: str, size_budget_bytes: Optional[int] = None) -> MediaFetchResult:
        """
        Fetch ``uri`` and turn it into storage-ready bytes

        Raises:
            MediaError: fetch_error, unsupported_type or type_detection_error
        """
        budget = size_budget_bytes or self.config.size_budget_bytes
        fetched = await self.fetcher.fetch(uri)
        detected = detect_type(fetched.data, uri, fetched.content_type)
        filename = build_filename(fetched.source_url, detected.extension, fetched.data)

        if detected.passthrough:
            logger.debug(f"Passing through {detected.mime} from {uri[:120]}")
            return MediaFetchResult(
                data=fetched.data,
                mime=detected.mime,
                filename=filename,
                source_url=fetched.source_url,
                passthrough=True,
            )

        if detected.is_video:
            dimensions = await probe_video_dimensions(fetched.data, self.config.ffprobe_path)
            return MediaFetchResult(
                data=fetched.data,
                mime=detected.mime,
                filename=filename,
                source_url=fetched.source_url,
                dimensions=dimensions,
            )

        if detected.mime == "image/svg+xml":
            return MediaFetchResult(
                data=fetched.data,
                mime=detected.mime,
                filename=filename,
                source_url=fetched.source_url,
                dimensions=await asyncio.to_thread(read_image_dimensions, fetched.data),
            )

        # Pillow work is CPU-bound; keep it off the event loop
        result = await asyncio.to_thread(
            fit_image_to_budget, fetched.data, detected.mime, budget, self.config, source=uri
        )
        if result.transcoded:
            filename = filename.rsplit(".", 1)[0] + ".webp"
            logger.info(f"Re-encoded {uri[:120]}: {len(fetched.data)} -> {result.size} bytes")
        return MediaFetchResult(
            data=result.data,
            mime=result.mime,
            filename=filename,
            source_url=fetched.source_url,
            dimensions=result.dimensions,
        )

    async def process(
        self,
        uri: str,
        contract_address: str,
        token_id: str,
        size_budget_bytes: Optional[int] = None,
        blockchain: Blockchain = Blockchain.ETHEREUM,
        source: Optional[str] = None,
    ) -> Optional[MediaFetchResult]:
        """Resolve and upload; None when the URI yields no usable media"""
        try:
            result = await self.resolve_media(uri, size_budget_bytes)
        except MediaError as e:
            logger.warning(f"Media unusable for {contract_address}:{token_id}: {e}")
            return None

        if self.media_store is None:
            return result.model_copy(update={"stored_url": result.source_url})

        tags = build_tags(result.filename, result.mime, contract_address, token_id, blockchain, source)
        existing = await self.media_store.find_by_tags(tags)
        if existing:
            logger.debug(f"Reusing stored media {existing.url} for {contract_address}:{token_id}")
            return result.model_copy(update={"stored_url": existing.url})

        try:
            uploaded = await self.upload_limiter.execute(
                lambda: self.media_store.upload(result.data, result.filename, result.mime, tags)
            )
        except (UploadError, ProviderUnavailable, RateLimitExhausted) as e:
            logger.warning(f"Upload failed for {result.filename}, keeping gateway URL: {e}")
            return result.model_copy(update={"stored_url": result.source_url})

        update: Dict[str, Any] = {"stored_url": uploaded.url}
        if uploaded.dimensions and not result.dimensions:
            update["dimensions"] = uploaded.dimensions
        return result.model_copy(update=update)

    async def process_artwork(
        self,
        artwork: CanonicalArtwork,
        size_budget_bytes: Optional[int] = None,
    ) -> CanonicalArtwork:
        """
        Resolve every media field of ``artwork``

        A field whose media cannot be used is cleared; the artwork itself
        always comes back. ``generator_url`` is live code and stays as-is.
        """
        updates: Dict[str, Any] = {}
        source = artwork.source.value if artwork.source else None
        for field_name in MEDIA_FIELDS:
            uri = getattr(artwork, field_name)
            if not uri:
                continue
            result = await self.process(
                uri,
                artwork.contract_address,
                artwork.token_id,
                size_budget_bytes,
                blockchain=artwork.blockchain,
                source=source,
            )
            if result is None:
                updates[field_name] = None
                continue
            updates[field_name] = result.stored_url
            if field_name != "thumbnail_url":
                if result.dimensions and artwork.dimensions is None and "dimensions" not in updates:
                    updates["dimensions"] = result.dimensions
                if not artwork.mime or field_name == "animation_url":
                    updates["mime"] = result.mime

        processed = artwork.model_copy(update=updates)
        if not processed.image_url and not processed.animation_url and not processed.generator_url:
            logger.warning(f"{artwork.uid} has no usable media after resolution")
        return processed
