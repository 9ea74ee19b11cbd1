"""
Tests for the indexing workflow; provider clients are replaced by mocks
"""

from unittest.mock import AsyncMock, Mock, call, patch

import pytest

from artwork_indexer.config import BackoffPolicy, Config, MediaConfig, RateLimiterConfig
from artwork_indexer.errors import (
    InvalidAddress,
    Malformed,
    NotFound,
    ProviderError,
    ProviderUnavailable,
    RateLimited,
    RateLimitExhausted,
)
from artwork_indexer.media import MediaFetcher, MediaPipeline
from artwork_indexer.models import Blockchain, IndexMode, Page, Provider
from artwork_indexer.platforms import WRAPPED_TEZ_CONTRACT
from artwork_indexer.rate_limiter import AdaptiveRateLimiter
from artwork_indexer.storage import InMemoryArtworkStore, InMemoryMediaStore
from artwork_indexer.workflow import BACKOFF_POLICIES, CancellationToken, IndexingWorkflow, JobState

from conftest import CID, WALLET_ETH, WALLET_TEZ, make_image


def make_client(limiter, pages):
    client = Mock()
    client.limiter = limiter
    client.fetch_page = AsyncMock(side_effect=pages)
    client.fetch_collection = AsyncMock(return_value=None)
    client.fetch_account = AsyncMock(return_value=None)
    client.fetch_item = AsyncMock(return_value=None)
    client.close = AsyncMock()
    return client


def token(fxhash_token, token_id, **overrides):
    return {**fxhash_token, "token_id": str(token_id), **overrides}


def page(records, cursor=None):
    return Page(records=records, next_cursor=cursor, has_more=cursor is not None)


@pytest.fixture
def tez_limiter(sleep_mock):
    return AdaptiveRateLimiter(name="objkt", sleep=sleep_mock)


def make_workflow(client, blockchain=Blockchain.TEZOS, **kwargs):
    return IndexingWorkflow(Config(), clients={blockchain: client}, **kwargs)


class TestRunJob:
    @pytest.mark.asyncio
    async def test_walks_every_page(self, tez_limiter, fxhash_token):
        client = make_client(
            tez_limiter,
            [page([token(fxhash_token, 1), token(fxhash_token, 2)], cursor="50"), page([token(fxhash_token, 3)])],
        )
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert job.state == JobState.DONE
        assert job.pages_fetched == 2
        assert [a.token_id for a in job.artworks] == ["1", "2", "3"]
        assert [c.args[2] for c in client.fetch_page.await_args_list] == [None, "50"]

    @pytest.mark.asyncio
    async def test_invalid_address_before_any_call(self, tez_limiter):
        client = make_client(tez_limiter, [])
        workflow = make_workflow(client)

        with pytest.raises(InvalidAddress):
            await workflow.index_wallet("tz1notanaddress", Blockchain.TEZOS)

        client.fetch_page.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicates_and_excluded_contracts(self, tez_limiter, fxhash_token):
        wrapped = token(fxhash_token, 0, fa_contract=WRAPPED_TEZ_CONTRACT, fa={"contract": WRAPPED_TEZ_CONTRACT})
        client = make_client(tez_limiter, [page([token(fxhash_token, 1), token(fxhash_token, 1), wrapped])])
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert [a.token_id for a in job.artworks] == ["1"]
        assert job.skipped == 1

    @pytest.mark.asyncio
    async def test_records_without_identity_are_skipped(self, tez_limiter, fxhash_token):
        broken = {k: v for k, v in fxhash_token.items() if k != "token_id"}
        client = make_client(tez_limiter, [Page(records=[broken, token(fxhash_token, 9)], skipped=2)])
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert [a.token_id for a in job.artworks] == ["9"]
        assert job.skipped == 3

    @pytest.mark.asyncio
    async def test_overflowing_supply_does_not_stop_the_page(self, tez_limiter, fxhash_token):
        client = make_client(tez_limiter, [page([token(fxhash_token, 1), token(fxhash_token, 2, supply="1e999")])])
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert job.state == JobState.DONE
        assert [a.token_id for a in job.artworks] == ["1", "2"]
        assert job.artworks[1].supply == 1

    @pytest.mark.asyncio
    async def test_backoff_waits_grow_per_policy(self, tez_limiter, sleep_mock, fxhash_token):
        client = make_client(
            tez_limiter,
            [
                RateLimitExhausted("objkt: rate limited", provider="objkt", attempts=4),
                ProviderUnavailable("objkt: 503", provider="objkt", status=503),
                page([token(fxhash_token, 1)]),
            ],
        )
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert job.state == JobState.DONE
        assert len(job.artworks) == 1
        assert sleep_mock.await_args_list == [call(2.0), call(3.0)]

    @pytest.mark.asyncio
    async def test_aborts_after_consecutive_failures_keeping_results(self, tez_limiter, fxhash_token):
        failures = [ProviderUnavailable("objkt: 502", provider="objkt", status=502)] * 3
        client = make_client(tez_limiter, [page([token(fxhash_token, 1)], cursor="50"), *failures])
        policies = {Provider.OBJKT: BackoffPolicy(base_ms=10, factor=2, cap_ms=100, max_consecutive_failures=3)}
        workflow = make_workflow(client, backoff_policies=policies)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert job.state == JobState.ABORTED
        assert "3 consecutive page failures" in job.abort_reason
        assert [a.token_id for a in job.artworks] == ["1"]
        assert client.fetch_page.await_count == 4

    @pytest.mark.asyncio
    async def test_non_retryable_page_error_aborts(self, tez_limiter):
        client = make_client(tez_limiter, [Malformed("objkt: bad payload", provider="objkt")])
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert job.state == JobState.ABORTED
        assert client.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_cancellation_between_pages(self, tez_limiter, fxhash_token):
        client = make_client(
            tez_limiter,
            [page([token(fxhash_token, 1)], cursor="50"), page([token(fxhash_token, 2)])],
        )
        workflow = make_workflow(client)
        cancel = CancellationToken()

        async def on_page(job, fetched):
            cancel.cancel()

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS, cancel_token=cancel, on_page=on_page)

        assert job.state == JobState.ABORTED
        assert job.abort_reason == "cancelled"
        assert [a.token_id for a in job.artworks] == ["1"]
        assert client.fetch_page.await_count == 1

    @pytest.mark.asyncio
    async def test_max_pages_stops_done(self, tez_limiter, fxhash_token):
        pages = [page([token(fxhash_token, n)], cursor=str(n)) for n in range(1, 6)]
        client = make_client(tez_limiter, pages)
        workflow = make_workflow(client)

        job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS, max_pages=2)

        assert job.state == JobState.DONE
        assert job.pages_fetched == 2
        assert len(job.artworks) == 2

    @pytest.mark.asyncio
    async def test_created_mode_passed_to_client(self, tez_limiter):
        client = make_client(tez_limiter, [page([])])
        workflow = make_workflow(client)

        await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS, mode=IndexMode.CREATED)

        assert client.fetch_page.await_args.args[1] == IndexMode.CREATED

    @pytest.mark.asyncio
    async def test_opensea_spaces_pages(self, sleep_mock, opensea_nft):
        limiter = AdaptiveRateLimiter(name="opensea", sleep=sleep_mock)
        second = {**opensea_nft, "identifier": "43"}
        client = make_client(limiter, [page([opensea_nft], cursor="abc"), page([second])])
        workflow = make_workflow(client, blockchain=Blockchain.ETHEREUM)

        job = await workflow.run_job(WALLET_ETH, Blockchain.ETHEREUM)

        assert len(job.artworks) == 2
        interval = BACKOFF_POLICIES[Provider.OPENSEA].min_page_interval_ms / 1000
        assert sleep_mock.await_args_list == [call(interval)]

    @pytest.mark.asyncio
    async def test_missing_api_key_aborts(self):
        workflow = IndexingWorkflow(Config(opensea_api_key=None))

        job = await workflow.run_job(WALLET_ETH, Blockchain.ETHEREUM)

        assert job.state == JobState.ABORTED
        assert "OPENSEA_API_KEY" in job.abort_reason


class TestPersistence:
    @pytest.mark.asyncio
    async def test_reindexing_is_idempotent(self, tez_limiter, fxhash_token):
        store = InMemoryArtworkStore()
        records = [token(fxhash_token, 1), token(fxhash_token, 2)]
        client = make_client(tez_limiter, [page(records), page(records)])
        workflow = make_workflow(client, artwork_store=store)

        first = await workflow.index_wallet(WALLET_TEZ, Blockchain.TEZOS)
        counts = (len(store.artworks), len(store.collections), len(store.creators))
        second = await workflow.index_wallet(WALLET_TEZ, Blockchain.TEZOS)

        assert len(first) == len(second) == 2
        assert (len(store.artworks), len(store.collections), len(store.creators)) == counts == (2, 1, 1)

    @pytest.mark.asyncio
    async def test_links_creator_and_collection(self, tez_limiter, fxhash_token):
        store = InMemoryArtworkStore()
        client = make_client(tez_limiter, [page([token(fxhash_token, 1)])])
        workflow = make_workflow(client, artwork_store=store)

        [artwork] = await workflow.index_wallet(WALLET_TEZ, Blockchain.TEZOS)

        creator_id, collection_id = store.links[artwork.uid]
        assert creator_id == "tz1aRoaRhSpRYvFdyvgWLL6TGyRoGF51wDjM"
        assert collection_id == fxhash_token["fa_contract"]


class TestGetSingleItem:
    @pytest.mark.asyncio
    async def test_returns_artwork(self, tez_limiter, fxhash_token):
        client = make_client(tez_limiter, [])
        client.fetch_item = AsyncMock(return_value=fxhash_token)
        workflow = make_workflow(client)

        artwork = await workflow.get_single_item(fxhash_token["fa_contract"], "1337", Blockchain.TEZOS)

        assert artwork.token_id == "1337"
        assert artwork.source == Provider.OBJKT

    @pytest.mark.asyncio
    async def test_not_found_is_none(self, tez_limiter):
        client = make_client(tez_limiter, [])
        client.fetch_item = AsyncMock(side_effect=NotFound("objkt: not found", provider="objkt", status=404))
        workflow = make_workflow(client)

        assert await workflow.get_single_item(WRAPPED_TEZ_CONTRACT, "1", Blockchain.TEZOS) is None

    @pytest.mark.asyncio
    async def test_empty_response_is_none(self, tez_limiter):
        client = make_client(tez_limiter, [])
        workflow = make_workflow(client)

        assert await workflow.get_single_item(WRAPPED_TEZ_CONTRACT, "1", Blockchain.TEZOS) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            Malformed("objkt: bad payload", provider="objkt"),
            ProviderError("objkt: HTTP 401", provider="objkt", status=401),
        ],
    )
    async def test_provider_errors_are_none(self, tez_limiter, error):
        client = make_client(tez_limiter, [])
        client.fetch_item = AsyncMock(side_effect=error)
        workflow = make_workflow(client)

        assert await workflow.get_single_item(WRAPPED_TEZ_CONTRACT, "1", Blockchain.TEZOS) is None

    @pytest.mark.asyncio
    async def test_missing_api_key_is_none(self):
        workflow = IndexingWorkflow(Config(opensea_api_key=None))

        assert await workflow.get_single_item(WALLET_ETH, "1", Blockchain.ETHEREUM) is None

    @pytest.mark.asyncio
    async def test_store_failure_is_none(self, tez_limiter, fxhash_token):
        client = make_client(tez_limiter, [])
        client.fetch_item = AsyncMock(return_value=fxhash_token)
        store = Mock()
        store.upsert_creator = AsyncMock(return_value="creator")
        store.upsert_collection = AsyncMock(side_effect=ProviderUnavailable("store down"))
        workflow = make_workflow(client, artwork_store=store)

        assert await workflow.get_single_item(fxhash_token["fa_contract"], "1337", Blockchain.TEZOS) is None


class TestMediaResolution:
    @pytest.fixture
    def media_pipeline(self, sleep_mock):
        config = MediaConfig(resolve_hosts=False)
        limiter = AdaptiveRateLimiter(RateLimiterConfig.media(), name="media", sleep=sleep_mock)
        upload_limiter = AdaptiveRateLimiter(RateLimiterConfig.media(), name="media-upload", sleep=sleep_mock)
        return MediaPipeline(
            config,
            media_store=InMemoryMediaStore(),
            fetcher=MediaFetcher(config, limiter=limiter),
            upload_limiter=upload_limiter,
        )

    @staticmethod
    def throttled_once(name):
        png = make_image(40, 30)
        throttled = []

        async def download(url, timeout):
            if name in url and not throttled:
                throttled.append(url)
                raise RateLimited(f"gateway 429: {url}", provider="media")
            return png, "image/png"

        return AsyncMock(side_effect=download)

    def records(self, fxhash_token):
        return [
            token(fxhash_token, 1, display_uri=f"ipfs://{CID}/one.png", thumbnail_uri=None),
            token(fxhash_token, 2, display_uri=f"ipfs://{CID}/two.png", thumbnail_uri=None),
        ]

    @pytest.mark.asyncio
    async def test_throttled_media_is_retried_and_stored(self, tez_limiter, fxhash_token, media_pipeline):
        client = make_client(tez_limiter, [page(self.records(fxhash_token))])
        workflow = make_workflow(client, media_pipeline=media_pipeline)
        download = self.throttled_once("two.png")

        with patch.object(media_pipeline.fetcher, "_download", download):
            job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert job.state == JobState.DONE
        assert [a.token_id for a in job.artworks] == ["1", "2"]
        assert all(a.image_url.startswith("memory://media/") for a in job.artworks)
        two = [c.args[0] for c in download.await_args_list if "two.png" in c.args[0]]
        assert two == [f"https://ipfs.io/ipfs/{CID}/two.png"] * 2
        assert media_pipeline.media_store.upload_calls == 2

    @pytest.mark.asyncio
    async def test_throttled_media_without_store_keeps_gateway_url(self, tez_limiter, fxhash_token, media_pipeline):
        media_pipeline.media_store = None
        client = make_client(tez_limiter, [page(self.records(fxhash_token))])
        workflow = make_workflow(client, media_pipeline=media_pipeline)

        with patch.object(media_pipeline.fetcher, "_download", self.throttled_once("two.png")):
            job = await workflow.run_job(WALLET_TEZ, Blockchain.TEZOS)

        assert [a.image_url for a in job.artworks] == [
            f"https://ipfs.io/ipfs/{CID}/one.png",
            f"https://ipfs.io/ipfs/{CID}/two.png",
        ]
