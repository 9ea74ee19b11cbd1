"""
Tests for media fetching and the resolve/upload pipeline; HTTP is mocked at _download
except where redirect handling needs a live local server
"""

import threading
from unittest.mock import AsyncMock, patch

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer

from artwork_indexer.config import MediaConfig, RateLimiterConfig
from artwork_indexer.errors import FetchError, MediaError, ProviderUnavailable, RateLimited, UploadError
from artwork_indexer.media import MediaFetcher, MediaPipeline, build_tags
from artwork_indexer.media.transcode import fit_image_to_budget
from artwork_indexer.models import Blockchain, CanonicalArtwork, Collection, Dimensions, Provider
from artwork_indexer.rate_limiter import AdaptiveRateLimiter
from artwork_indexer.storage import InMemoryMediaStore

from conftest import CID, FXHASH_ISSUER, make_image

MP4 = b"\x00\x00\x00\x18ftypmp42\x00\x00\x00\x00isommp42" + b"\x00" * 64


@pytest.fixture
def media_config():
    return MediaConfig(resolve_hosts=False)


@pytest.fixture
def fetcher(media_config, sleep_mock):
    limiter = AdaptiveRateLimiter(RateLimiterConfig.media(), name="media", sleep=sleep_mock)
    return MediaFetcher(media_config, limiter=limiter)


@pytest.fixture
def store():
    return InMemoryMediaStore()


@pytest.fixture
def pipeline(media_config, fetcher, store, sleep_mock):
    upload_limiter = AdaptiveRateLimiter(RateLimiterConfig.media(), name="media-upload", sleep=sleep_mock)
    return MediaPipeline(media_config, media_store=store, fetcher=fetcher, upload_limiter=upload_limiter)


def make_artwork(**media):
    return CanonicalArtwork(
        contract_address=FXHASH_ISSUER,
        token_id="7",
        blockchain=Blockchain.TEZOS,
        collection=Collection(slug=FXHASH_ISSUER, contract_address=FXHASH_ISSUER),
        source=Provider.OBJKT,
        **media,
    )


class TestMediaFetcher:
    @pytest.mark.asyncio
    async def test_gateway_429_retried_then_succeeds(self, fetcher):
        png = make_image()
        download = AsyncMock(side_effect=[RateLimited("gateway 429"), (png, "image/png")])
        with patch.object(fetcher, "_download", download):
            fetched = await fetcher.fetch(f"ipfs://{CID}")

        assert fetched.data == png
        assert fetched.source_url == f"https://ipfs.io/ipfs/{CID}"
        assert download.await_count == 2
        assert {c.args[0] for c in download.await_args_list} == {f"https://ipfs.io/ipfs/{CID}"}

    @pytest.mark.asyncio
    async def test_falls_through_gateways(self, fetcher):
        png = make_image()
        download = AsyncMock(side_effect=[FetchError("x", "HTTP 404"), (png, "image/png")])
        with patch.object(fetcher, "_download", download):
            fetched = await fetcher.fetch(f"ipfs://{CID}")

        assert fetched.source_url == f"https://dweb.link/ipfs/{CID}"

    @pytest.mark.asyncio
    async def test_every_gateway_failing_is_fetch_error(self, fetcher):
        with patch.object(fetcher, "_download", AsyncMock(side_effect=FetchError("x", "HTTP 404"))) as download:
            with pytest.raises(FetchError):
                await fetcher.fetch(f"ipfs://{CID}")

        assert download.await_count == 4

    @pytest.mark.asyncio
    async def test_per_url_timeouts(self, fetcher):
        png = make_image()
        with patch.object(fetcher, "_download", AsyncMock(return_value=(png, None))) as download:
            await fetcher.fetch("ar://bNbA3TEQVL60xlgCcqdz4ZPHFZ711cZ3hmkpGttDt_U")
            await fetcher.fetch("https://example.com/a.png")

        assert [c.args[1] for c in download.await_args_list] == [30, 15]

    @pytest.mark.asyncio
    async def test_internal_hosts_blocked(self, fetcher):
        with patch.object(fetcher, "_download", AsyncMock()) as download:
            with pytest.raises(FetchError):
                await fetcher.fetch("http://169.254.169.254/latest/meta-data")

        download.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_data_uri_needs_no_network(self, fetcher):
        with patch.object(fetcher, "_download", AsyncMock()) as download:
            fetched = await fetcher.fetch("data:text/plain;base64,aGVsbG8=")

        assert fetched.data == b"hello"
        download.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_relative_redirect_resolved(self, fetcher):
        target = await fetcher._check_redirect("https://example.com/media/a.png", "/cdn/a.png")

        assert target == "https://example.com/cdn/a.png"

    @pytest.mark.asyncio
    async def test_redirect_to_internal_host_blocked(self, fetcher):
        with pytest.raises(FetchError, match="blocked redirect"):
            await fetcher._check_redirect("https://example.com/a.png", "http://169.254.169.254/latest/meta-data")

    @pytest.mark.asyncio
    async def test_download_stops_at_internal_redirect(self, fetcher):
        async def art(request):
            raise web.HTTPFound("http://169.254.169.254/latest/meta-data")

        app = web.Application()
        app.router.add_get("/art.png", art)
        server = LocalServer(app)
        await server.start_server()
        try:
            with pytest.raises(FetchError, match="blocked redirect"):
                await fetcher._download(str(server.make_url("/art.png")), 5)
        finally:
            await server.close()


class TestMediaPipeline:
    @pytest.mark.asyncio
    async def test_resolve_image(self, pipeline):
        png = make_image(40, 30)
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(png, "image/png"))):
            result = await pipeline.resolve_media(f"ipfs://{CID}/artwork.png")

        assert result.mime == "image/png"
        assert result.filename == "artwork.png"
        assert result.dimensions == Dimensions(width=40, height=30)
        assert result.passthrough is False

    @pytest.mark.asyncio
    async def test_resolve_transcodes_over_budget(self, pipeline):
        png = make_image(300, 200, noise=True)
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(png, "image/png"))):
            result = await pipeline.resolve_media("https://example.com/big.png", size_budget_bytes=len(png) // 4)

        assert result.mime == "image/webp"
        assert result.filename == "big.webp"
        assert result.size <= len(png) // 4

    @pytest.mark.asyncio
    async def test_resolve_transcodes_off_the_event_loop(self, pipeline):
        png = make_image(40, 30)
        threads = []

        def recording(*args, **kwargs):
            threads.append(threading.get_ident())
            return fit_image_to_budget(*args, **kwargs)

        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(png, "image/png"))):
            with patch("artwork_indexer.media.pipeline.fit_image_to_budget", side_effect=recording):
                result = await pipeline.resolve_media(f"ipfs://{CID}/artwork.png")

        assert result.dimensions == Dimensions(width=40, height=30)
        assert len(threads) == 1
        assert threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_resolve_video_uses_ffprobe(self, pipeline):
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(MP4, "video/mp4"))):
            with patch(
                "artwork_indexer.media.pipeline.probe_video_dimensions",
                AsyncMock(return_value=Dimensions(width=1920, height=1080)),
            ) as measure:
                result = await pipeline.resolve_media(f"ipfs://{CID}")

        assert result.mime == "video/mp4"
        assert result.dimensions == Dimensions(width=1920, height=1080)
        assert result.filename == f"{CID}.mp4"
        measure.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_html_passthrough(self, pipeline):
        html = b"<!doctype html><html><body><canvas></canvas></body></html>"
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(html, "text/html"))):
            result = await pipeline.resolve_media("https://example.com/live/index.html")

        assert result.passthrough is True
        assert result.data == html
        assert result.filename == "index.html"

    @pytest.mark.asyncio
    async def test_process_uploads_once_and_reuses(self, pipeline, store):
        png = make_image()
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(png, "image/png"))):
            first = await pipeline.process(f"ipfs://{CID}/a.png", FXHASH_ISSUER, "7", blockchain=Blockchain.TEZOS)
            second = await pipeline.process(f"ipfs://{CID}/a.png", FXHASH_ISSUER, "7", blockchain=Blockchain.TEZOS)

        assert first.stored_url.startswith("memory://media/")
        assert second.stored_url == first.stored_url
        assert store.upload_calls == 1

    @pytest.mark.asyncio
    async def test_upload_failure_falls_back_to_gateway_url(self, pipeline, store):
        png = make_image()
        store.upload = AsyncMock(side_effect=UploadError("storage down"))
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(png, "image/png"))):
            result = await pipeline.process(f"ipfs://{CID}/a.png", FXHASH_ISSUER, "7")

        assert result.stored_url == f"https://ipfs.io/ipfs/{CID}/a.png"
        assert store.upload.await_count == 3

    @pytest.mark.asyncio
    async def test_process_unusable_uri_returns_none(self, pipeline):
        with patch.object(pipeline.fetcher, "_download", AsyncMock(side_effect=ProviderUnavailable("down"))):
            assert await pipeline.process(f"ipfs://{CID}", FXHASH_ISSUER, "7") is None

    @pytest.mark.asyncio
    async def test_process_artwork_clears_failed_fields(self, pipeline):
        png = make_image(40, 30)

        async def download(url, timeout):
            if "broken" in url:
                raise FetchError(url, "HTTP 404")
            return png, "image/png"

        artwork = make_artwork(
            image_url="https://example.com/art.png",
            thumbnail_url="https://example.com/broken.png",
            generator_url="onchfs://abc/?fxhash=oo1",
        )
        with patch.object(pipeline.fetcher, "_download", AsyncMock(side_effect=download)):
            processed = await pipeline.process_artwork(artwork)

        assert processed.image_url.startswith("memory://media/")
        assert processed.thumbnail_url is None
        assert processed.generator_url == "onchfs://abc/?fxhash=oo1"
        assert processed.dimensions == Dimensions(width=40, height=30)
        assert processed.mime == "image/png"

    def test_tags(self):
        tags = build_tags("a.png", "image/png", FXHASH_ISSUER, "7", Blockchain.TEZOS, "objkt")

        assert set(tags) == {"mediaHash", "contractAddr", "tokenID", "blockchain", "source"}
        assert tags["tokenID"] == "7"
        assert len(tags["mediaHash"]) == 64
        assert len(tags) <= 6

    @pytest.mark.asyncio
    async def test_undetectable_media(self, pipeline):
        with patch.object(pipeline.fetcher, "_download", AsyncMock(return_value=(b"\x01\x02", None))):
            with pytest.raises(MediaError) as exc_info:
                await pipeline.resolve_media("https://example.com/blob")

        assert exc_info.value.kind == MediaError.TYPE_DETECTION_ERROR
