"""
objkt GraphQL client for Tezos wallets
Offset-paginated holder/creator queries against data.objkt.com
"""

from typing import Any, Dict, List, Optional

from loguru import logger

from ..config import ProviderConfig
from ..errors import Malformed, RateLimited
from ..models import Blockchain, IndexMode, Page
from ..platforms import WRAPPED_TEZ_CONTRACT
from .base import BaseProviderClient

TOKEN_FIELDS = """
fragment TokenFields on token {
  token_id
  fa_contract
  name
  description
  display_uri
  thumbnail_uri
  artifact_uri
  metadata
  mime
  supply
  timestamp
  dimensions
  symbol
  fa {
    contract
    name
    description
    logo
    website
  }
  creators {
    creator_address
    holder {
      address
      alias
      logo
      description
      website
      twitter
      instagram
    }
  }
  attributes {
    attribute {
      name
      type
      value
    }
  }
}
"""

OWNED_TOKENS_QUERY = """
query OwnedTokens($address: String!, $excluded: String!, $limit: Int!, $offset: Int!) {
  token_holder(
    where: {
      holder_address: {_eq: $address}
      quantity: {_gt: "0"}
      token: {fa_contract: {_neq: $excluded}}
    }
    order_by: {last_incremented_at: desc}
    limit: $limit
    offset: $offset
  ) {
    quantity
    token {
      ...TokenFields
    }
  }
}
""" + TOKEN_FIELDS

CREATED_TOKENS_QUERY = """
query CreatedTokens($address: String!, $excluded: String!, $limit: Int!, $offset: Int!) {
  token(
    where: {
      creators: {creator_address: {_eq: $address}}
      fa_contract: {_neq: $excluded}
    }
    order_by: {timestamp: desc}
    limit: $limit
    offset: $offset
  ) {
    ...TokenFields
  }
}
""" + TOKEN_FIELDS

TOKEN_DETAILS_QUERY = """
query TokenDetails($contract: String!, $tokenId: String!) {
  token(where: {fa_contract: {_eq: $contract}, token_id: {_eq: $tokenId}}, limit: 1) {
    ...TokenFields
  }
}
""" + TOKEN_FIELDS

COLLECTION_QUERY = """
query Collection($contract: String!) {
  fa(where: {contract: {_eq: $contract}}) {
    contract
    name
    description
    logo
    website
    twitter
    floor_price
    items
    editions
    timestamp
    creator_address
  }
}
"""

HOLDER_QUERY = """
query Holder($address: String!) {
  holder(where: {address: {_eq: $address}}) {
    address
    alias
    logo
    description
    website
    twitter
    instagram
    tzdomain
  }
}
"""


class ObjktClient(BaseProviderClient):
    """objkt.com GraphQL API client"""

    blockchain = Blockchain.TEZOS
    DEFAULT_PAGE_SIZE = 500

    def _default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    def _check_payload(self, payload: Any) -> Any:
        if not isinstance(payload, dict):
            raise Malformed("objkt: GraphQL response is not an object", provider=self.name)
        errors = payload.get("errors")
        if errors:
            message = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            lowered = message.lower()
            if "rate limit" in lowered or "too many requests" in lowered:
                raise RateLimited(f"objkt: {message}", provider=self.name)
            raise Malformed(f"objkt: GraphQL error: {message}", provider=self.name)
        if not isinstance(payload.get("data"), dict):
            raise Malformed("objkt: GraphQL response has no data", provider=self.name)
        return payload["data"]

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", self.base_url, json_data={"query": query, "variables": variables})

    async def fetch_page(
        self,
        identity: str,
        mode: IndexMode = IndexMode.OWNED,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Page:
        """
        Get one page of a wallet's tokens

        The cursor is the string form of the offset. ``has_more`` is true when
        the provider returned a full page.
        """
        limit = page_size or self.page_size or self.DEFAULT_PAGE_SIZE
        offset = int(cursor) if cursor else 0
        variables = {"address": identity, "excluded": WRAPPED_TEZ_CONTRACT, "limit": limit, "offset": offset}

        if mode == IndexMode.CREATED:
            data = await self._graphql(CREATED_TOKENS_QUERY, variables)
            rows = data.get("token")
            if not isinstance(rows, list):
                raise Malformed(f"objkt: unexpected created tokens payload for {identity}", provider=self.name)
            tokens = rows
        else:
            data = await self._graphql(OWNED_TOKENS_QUERY, variables)
            rows = data.get("token_holder")
            if not isinstance(rows, list):
                raise Malformed(f"objkt: unexpected holdings payload for {identity}", provider=self.name)
            tokens = []
            for row in rows:
                token = row.get("token") if isinstance(row, dict) else None
                if isinstance(token, dict):
                    token = {**token, "quantity": row.get("quantity")}
                tokens.append(token)

        records = self._filter_tokens(tokens)
        skipped = len(tokens) - len(records)
        has_more = len(rows) == limit
        next_cursor = str(offset + limit) if has_more else None
        logger.info(
            f"objkt {mode.value} page for {identity} at offset {offset}: "
            f"{len(records)} tokens (dropped {skipped}, more={has_more})"
        )
        return Page(records=records, next_cursor=next_cursor, has_more=has_more, skipped=skipped)

    def _filter_tokens(self, tokens: List[Any]) -> List[Dict[str, Any]]:
        records = []
        for token in tokens:
            if not isinstance(token, dict) or not token.get("fa_contract") or token.get("token_id") in (None, ""):
                logger.warning(f"Skipping malformed objkt token: {str(token)[:200]}")
                continue
            # The query excludes it too; never let wrapped tez reach the transformer
            if token["fa_contract"] == WRAPPED_TEZ_CONTRACT:
                logger.debug(f"Dropping wrapped tez token {token.get('token_id')}")
                continue
            records.append(token)
        return records

    async def fetch_item(self, contract_address: str, token_id: str) -> Optional[Dict[str, Any]]:
        """Get one token by contract and id; None when objkt does not know it"""
        if contract_address == WRAPPED_TEZ_CONTRACT:
            return None
        data = await self._graphql(TOKEN_DETAILS_QUERY, {"contract": contract_address, "tokenId": str(token_id)})
        tokens = data.get("token") or []
        if not tokens:
            logger.info(f"objkt has no token {contract_address}:{token_id}")
            return None
        return tokens[0]

    async def fetch_collection(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Get FA contract (collection) details with floor price and counts"""

        async def load():
            data = await self._graphql(COLLECTION_QUERY, {"contract": identifier})
            rows = data.get("fa") or []
            return rows[0] if rows else None

        return await self._cached_lookup(f"collection:{identifier}", load)

    async def fetch_account(self, address: str) -> Optional[Dict[str, Any]]:
        """Get holder profile (alias, logo, socials)"""

        async def load():
            data = await self._graphql(HOLDER_QUERY, {"address": address})
            rows = data.get("holder") or []
            return rows[0] if rows else None

        return await self._cached_lookup(f"account:{address}", load)
