"""
OpenSea API v2 client for EVM wallets
Cursor-paginated owned tokens, mint-derived created tokens, and enrichment lookups
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from ..config import ProviderConfig
from ..errors import ConfigurationError, Malformed, NotFound
from ..models import Blockchain, IndexMode, Page
from .base import BaseProviderClient

NULL_ADDRESS = "0x0000000000000000000000000000000000000000"


class OpenSeaClient(BaseProviderClient):
    """OpenSea API v2 client"""

    MAX_PAGE_SIZE = 200
    EVENTS_PAGE_SIZE = 50

    # Chain name mapping
    CHAIN_MAPPING = {
        Blockchain.ETHEREUM: "ethereum",
        Blockchain.POLYGON: "matic",
    }

    def __init__(self, config: ProviderConfig, blockchain: Blockchain = Blockchain.ETHEREUM, **kwargs):
        if not config.api_key:
            raise ConfigurationError("OpenSea client requires an API key")
        if blockchain not in self.CHAIN_MAPPING:
            raise ConfigurationError(f"OpenSea client does not index {blockchain.value}")
        super().__init__(config, **kwargs)
        self.blockchain = blockchain
        self.chain = self.CHAIN_MAPPING[blockchain]

    def _default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "X-API-KEY": self.config.api_key}

    async def fetch_page(
        self,
        identity: str,
        mode: IndexMode = IndexMode.OWNED,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page:
        """
        Get one page of a wallet's tokens

        Owned mode lists the account's NFTs. Created mode walks the account's
        transfer events and keeps the mints (transfers from the null address)
        received by the wallet.
        """
        if mode == IndexMode.CREATED:
            return await self._fetch_created_page(identity, cursor)

        limit = min(page_size or self.page_size, self.MAX_PAGE_SIZE)
        params: Dict[str, Any] = {"limit": limit}
        if cursor:
            params["next"] = cursor

        data = await self._request("GET", f"/chain/{self.chain}/account/{identity}/nfts", params=params)
        if not isinstance(data, dict) or not isinstance(data.get("nfts"), list):
            raise Malformed(f"opensea: unexpected account nfts payload for {identity}", provider=self.name)

        records, skipped = self._valid_records(data["nfts"])
        next_cursor = data.get("next") or None
        logger.info(f"OpenSea page for {identity}: {len(records)} NFTs (skipped {skipped}, more={bool(next_cursor)})")
        return Page(records=records, next_cursor=next_cursor, has_more=bool(next_cursor), skipped=skipped)

    async def _fetch_created_page(self, identity: str, cursor: Optional[str]) -> Page:
        params: Dict[str, Any] = {"event_type": "transfer", "limit": self.EVENTS_PAGE_SIZE}
        if cursor:
            params["next"] = cursor

        data = await self._request("GET", f"/events/accounts/{identity}", params=params)
        if not isinstance(data, dict) or not isinstance(data.get("asset_events"), list):
            raise Malformed(f"opensea: unexpected account events payload for {identity}", provider=self.name)

        wallet = identity.lower()
        minted: List[Dict[str, Any]] = []
        for event in data["asset_events"]:
            if not isinstance(event, dict) or not isinstance(event.get("nft"), dict):
                continue
            if event.get("chain") and event["chain"] != self.chain:
                continue
            from_address = (event.get("from_address") or NULL_ADDRESS).lower()
            to_address = (event.get("to_address") or "").lower()
            if from_address != NULL_ADDRESS or to_address != wallet:
                continue
            record = dict(event["nft"])
            record.setdefault("creator", identity)
            if event.get("event_timestamp"):
                record["minted_at"] = event["event_timestamp"]
            minted.append(record)

        records, skipped = self._valid_records(minted)
        next_cursor = data.get("next") or None
        logger.info(f"OpenSea created page for {identity}: {len(records)} mints (more={bool(next_cursor)})")
        return Page(records=records, next_cursor=next_cursor, has_more=bool(next_cursor), skipped=skipped)

    def _valid_records(self, nfts: List[Any]):
        records = []
        skipped = 0
        for nft in nfts:
            if not isinstance(nft, dict) or not nft.get("contract") or nft.get("identifier") in (None, ""):
                skipped += 1
                logger.warning(f"Skipping malformed OpenSea record: {str(nft)[:200]}")
                continue
            records.append(nft)
        return records, skipped

    async def fetch_item(self, contract_address: str, token_id: str) -> Optional[Dict[str, Any]]:
        """Get full token detail (traits, creator, animation); None when missing"""
        try:
            data = await self._request("GET", f"/chain/{self.chain}/contract/{contract_address}/nfts/{token_id}")
        except NotFound:
            logger.info(f"OpenSea has no NFT {contract_address}:{token_id}")
            return None
        nft = data.get("nft") if isinstance(data, dict) else None
        if not isinstance(nft, dict):
            raise Malformed(f"opensea: unexpected nft payload for {contract_address}:{token_id}", provider=self.name)
        return nft

    async def fetch_collection(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Get collection metadata by slug"""
        return await self._cached_lookup(
            f"collection:{identifier}",
            lambda: self._request("GET", f"/collections/{identifier}"),
        )

    async def fetch_account(self, address: str) -> Optional[Dict[str, Any]]:
        """Get account profile (username, avatar, bio, socials)"""
        return await self._cached_lookup(
            f"account:{address.lower()}",
            lambda: self._request("GET", f"/accounts/{address}"),
        )

    async def fetch_mint_date(self, contract_address: str, token_id: str, max_pages: int = 3) -> Optional[datetime]:
        """
        Earliest mint transfer for a token from the events API

        Falls back to the earliest transfer of any kind. Returns None when
        there are no transfer events at all.
        """
        events: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        for _ in range(max_pages):
            params: Dict[str, Any] = {"event_type": "transfer", "limit": self.EVENTS_PAGE_SIZE}
            if cursor:
                params["next"] = cursor
            try:
                data = await self._request(
                    "GET",
                    f"/events/chain/{self.chain}/contract/{contract_address}/nfts/{token_id}",
                    params=params,
                )
            except NotFound:
                return None
            page_events = data.get("asset_events") if isinstance(data, dict) else None
            if not isinstance(page_events, list):
                break
            events.extend(e for e in page_events if isinstance(e, dict) and e.get("event_timestamp"))
            cursor = data.get("next")
            if not cursor:
                break

        if not events:
            return None

        mints = [e for e in events if (e.get("from_address") or NULL_ADDRESS).lower() == NULL_ADDRESS]
        earliest = min(mints or events, key=lambda e: int(e["event_timestamp"]))
        return datetime.fromtimestamp(int(earliest["event_timestamp"]), tz=timezone.utc)
