"""
Wallet indexing orchestration

A job walks a wallet's pages through the provider client, transforms each
record, resolves its media and hands it to the artwork store. Page-level
failures back off through the client's limiter and eventually abort the job
with whatever was collected so far.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from loguru import logger

from .cache import CacheAdapter, get_cache_adapter
from .clients import BaseProviderClient, ObjktClient, OpenSeaClient
from .config import BackoffPolicy, Config
from .errors import (
    IndexerError,
    InvalidAddress,
    Malformed,
    MissingRequiredFields,
    ProviderUnavailable,
    RateLimited,
    RateLimitExhausted,
)
from .media import MediaPipeline
from .models import Blockchain, CanonicalArtwork, IndexMode, Page, Provider
from .platforms import is_excluded_contract
from .storage import ArtworkStore
from .transformer import NFTTransformer
from .utils import validate_address

BACKOFF_POLICIES: Dict[Provider, BackoffPolicy] = {
    Provider.OBJKT: BackoffPolicy(base_ms=2000, factor=1.5, cap_ms=30000, max_consecutive_failures=10),
    Provider.OPENSEA: BackoffPolicy(
        base_ms=5000, factor=2, cap_ms=60000, max_consecutive_failures=10, min_page_interval_ms=3000
    ),
}

PAGE_RETRY_ERRORS = (RateLimitExhausted, ProviderUnavailable, RateLimited)


class JobState(str, Enum):
    START = "start"
    PAGINATING = "paginating"
    ACCUMULATING = "accumulating"
    BACKOFF_WAITING = "backoff_waiting"
    DONE = "done"
    ABORTED = "aborted"


class CancellationToken:
    """Cooperative cancellation, checked between pages and between records"""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class IndexJob:
    """State and results of one wallet indexing run"""
    address: str
    blockchain: Blockchain
    mode: IndexMode
    state: JobState = JobState.START
    artworks: List[CanonicalArtwork] = field(default_factory=list)
    pages_fetched: int = 0
    cursor: Optional[str] = None
    abort_reason: Optional[str] = None
    consecutive_failures: int = 0
    skipped: int = 0
    seen: Set[str] = field(default_factory=set)

    @property
    def finished(self) -> bool:
        return self.state in (JobState.DONE, JobState.ABORTED)

    def abort(self, reason: str) -> None:
        self.state = JobState.ABORTED
        self.abort_reason = reason
        logger.warning(
            f"Job for {self.address} aborted ({reason}) after {self.pages_fetched} pages "
            f"with {len(self.artworks)} artworks"
        )


def provider_for(blockchain: Blockchain) -> Provider:
    return Provider.OBJKT if blockchain == Blockchain.TEZOS else Provider.OPENSEA


class IndexingWorkflow:
    """Runs indexing jobs against the provider for each chain"""

    def __init__(
        self,
        config: Optional[Config] = None,
        clients: Optional[Dict[Blockchain, BaseProviderClient]] = None,
        media_pipeline: Optional[MediaPipeline] = None,
        artwork_store: Optional[ArtworkStore] = None,
        backoff_policies: Optional[Dict[Provider, BackoffPolicy]] = None,
        cache: Optional[CacheAdapter] = None,
        resolve_mint_dates: bool = False,
    ):
        self.config = config or Config()
        self.clients: Dict[Blockchain, BaseProviderClient] = dict(clients or {})
        self.media_pipeline = media_pipeline
        self.artwork_store = artwork_store
        self.backoff_policies = backoff_policies or BACKOFF_POLICIES
        self.cache = cache
        self.resolve_mint_dates = resolve_mint_dates
        self._transformers: Dict[Blockchain, NFTTransformer] = {}

    def client_for(self, blockchain: Blockchain) -> BaseProviderClient:
        """Provider client for a chain, created on first use"""
        if blockchain not in self.clients:
            if self.cache is None:
                self.cache = get_cache_adapter(self.config)
            if blockchain == Blockchain.TEZOS:
                client = ObjktClient(
                    self.config.get_objkt_config(),
                    cache=self.cache,
                    negative_cache_ttl=self.config.negative_cache_ttl,
                )
            else:
                client = OpenSeaClient(
                    self.config.get_opensea_config(),
                    blockchain=blockchain,
                    cache=self.cache,
                    negative_cache_ttl=self.config.negative_cache_ttl,
                )
            self.clients[blockchain] = client
        return self.clients[blockchain]

    def transformer_for(self, blockchain: Blockchain) -> NFTTransformer:
        if blockchain not in self._transformers:
            self._transformers[blockchain] = NFTTransformer(
                enrichment_client=self.client_for(blockchain),
                resolve_mint_dates=self.resolve_mint_dates,
            )
        return self._transformers[blockchain]

    @staticmethod
    def _validated(address: str, blockchain: Blockchain) -> str:
        is_valid, normalized = validate_address(address, blockchain)
        if not is_valid or not normalized:
            raise InvalidAddress(address, blockchain.value)
        return normalized

    async def index_wallet(
        self,
        address: str,
        blockchain: Blockchain,
        mode: IndexMode = IndexMode.OWNED,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[CanonicalArtwork]:
        """
        Index every token a wallet owns (or created)

        Raises:
            InvalidAddress: before any network call
        """
        job = await self.run_job(address, blockchain, mode, cancel_token=cancel_token)
        return job.artworks

    async def run_job(
        self,
        address: str,
        blockchain: Blockchain,
        mode: IndexMode = IndexMode.OWNED,
        cancel_token: Optional[CancellationToken] = None,
        max_pages: Optional[int] = None,
        on_page: Optional[Callable[[IndexJob, Page], Awaitable[Any]]] = None,
    ) -> IndexJob:
        """Run one job to DONE or ABORTED; only InvalidAddress escapes"""
        blockchain = Blockchain(blockchain)
        mode = IndexMode(mode)
        identity = self._validated(address, blockchain)
        token = cancel_token or CancellationToken()
        page_limit = max_pages or self.config.max_pages

        job = IndexJob(address=identity, blockchain=blockchain, mode=mode)
        provider = provider_for(blockchain)
        policy = self.backoff_policies[provider]

        try:
            client = self.client_for(blockchain)
            transformer = self.transformer_for(blockchain)
        except IndexerError as e:
            job.abort(str(e))
            return job

        logger.info(f"Indexing {mode.value} tokens of {identity} on {blockchain.value} via {provider.value}")

        while not job.finished:
            if token.cancelled:
                job.abort("cancelled")
                break
            if job.pages_fetched >= page_limit:
                logger.warning(f"Stopping {identity} at max_pages={page_limit}; more pages may exist")
                job.state = JobState.DONE
                break
            if job.pages_fetched > 0 and job.consecutive_failures == 0 and policy.min_page_interval_ms:
                await client.limiter.wait(policy.min_page_interval_ms)

            job.state = JobState.PAGINATING
            try:
                page = await client.fetch_page(identity, mode, job.cursor)
            except PAGE_RETRY_ERRORS as e:
                job.consecutive_failures += 1
                if job.consecutive_failures >= policy.max_consecutive_failures:
                    job.abort(f"{job.consecutive_failures} consecutive page failures: {e}")
                    break
                job.state = JobState.BACKOFF_WAITING
                delay = policy.delay_for(job.consecutive_failures)
                logger.warning(
                    f"Page fetch failed for {identity} ({job.consecutive_failures}/"
                    f"{policy.max_consecutive_failures}), retrying in {delay:.0f}ms: {e}"
                )
                await client.limiter.wait(delay)
                continue
            except IndexerError as e:
                job.abort(f"page fetch failed: {e}")
                break

            job.consecutive_failures = 0
            job.pages_fetched += 1
            job.skipped += page.skipped
            job.state = JobState.ACCUMULATING

            for raw in page.records:
                if token.cancelled:
                    job.abort("cancelled")
                    break
                await self._accumulate(job, raw, provider, transformer)
            if job.finished:
                break

            if on_page is not None:
                await on_page(job, page)

            job.cursor = page.next_cursor
            if not page.has_more or not page.next_cursor:
                job.state = JobState.DONE

        logger.info(
            f"Job for {identity} finished {job.state.value}: {len(job.artworks)} artworks, "
            f"{job.pages_fetched} pages, {job.skipped} skipped"
        )
        return job

    async def _accumulate(
        self,
        job: IndexJob,
        raw: Dict[str, Any],
        provider: Provider,
        transformer: NFTTransformer,
    ) -> None:
        try:
            artwork = await transformer.transform(raw, provider, job.blockchain)
        except (MissingRequiredFields, Malformed, ValueError, OverflowError) as e:
            job.skipped += 1
            logger.warning(f"Skipping record for {job.address}: {e}")
            return

        if artwork.uid in job.seen:
            logger.debug(f"Duplicate {artwork.uid} ignored")
            return
        if is_excluded_contract(artwork.contract_address, job.blockchain):
            job.skipped += 1
            logger.debug(f"Excluded contract {artwork.contract_address}")
            return

        try:
            if self.media_pipeline is not None:
                artwork = await self.media_pipeline.process_artwork(artwork)
            await self._persist(artwork)
        except IndexerError as e:
            job.skipped += 1
            logger.warning(f"Skipping {artwork.uid}: {e}")
            return

        job.seen.add(artwork.uid)
        job.artworks.append(artwork)

    async def _persist(self, artwork: CanonicalArtwork) -> None:
        if self.artwork_store is None:
            return
        creator_id = await self.artwork_store.upsert_creator(artwork.creator) if artwork.creator else None
        collection_id = await self.artwork_store.upsert_collection(artwork.collection)
        await self.artwork_store.upsert_artwork(artwork, creator_id=creator_id, collection_id=collection_id)

    async def get_single_item(
        self,
        contract_address: str,
        token_id: str,
        blockchain: Blockchain,
    ) -> Optional[CanonicalArtwork]:
        """One token, transformed and media-resolved; None when it cannot be produced"""
        blockchain = Blockchain(blockchain)
        provider = provider_for(blockchain)
        label = f"{contract_address}:{token_id}"
        try:
            client = self.client_for(blockchain)
            raw = await client.fetch_item(contract_address, str(token_id))
        except IndexerError as e:
            logger.warning(f"Could not fetch {label}: {e}")
            return None
        if not raw:
            return None

        try:
            artwork = await self.transformer_for(blockchain).transform(raw, provider, blockchain)
        except (IndexerError, ValueError, OverflowError) as e:
            logger.warning(f"Could not transform {label}: {e}")
            return None

        try:
            if self.media_pipeline is not None:
                artwork = await self.media_pipeline.process_artwork(artwork)
            await self._persist(artwork)
        except IndexerError as e:
            logger.warning(f"Could not store {label}: {e}")
            return None
        return artwork

    async def close(self) -> None:
        closed = set()
        for client in self.clients.values():
            if id(client.cache) not in closed:
                closed.add(id(client.cache))
                await client.close()
