"""
Map raw provider records onto the canonical artwork model

Every field is read through an ordered list of named extraction strategies.
The first strategy producing a usable value wins, so each provider's quirks
live in one table instead of nested fallbacks.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from loguru import logger

from . import platforms
from .clients.base import BaseProviderClient
from .errors import IndexerError, MissingRequiredFields
from .models import (
    Attribute,
    Blockchain,
    CanonicalArtwork,
    Collection,
    Creator,
    Dimensions,
    Provider,
)
from .utils import coerce_positive_int, normalize_contract

Strategy = Tuple[str, Callable[[Dict[str, Any]], Any]]

# Ethereum mainnet launched 2015-07-30; nothing is minted before that
EARLIEST_MINT = datetime(2015, 7, 30, tzinfo=timezone.utc)

MIME_BY_EXTENSION = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "ogv": "video/ogg",
    "html": "text/html",
    "htm": "text/html",
    "js": "application/javascript",
    "json": "application/json",
    "pdf": "application/pdf",
}

SOCIAL_PLATFORMS = ("twitter", "instagram", "discord", "website")


def dig(data: Any, *path: str) -> Any:
    """Nested dict lookup that tolerates missing or non-dict levels"""
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def clean_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def first_value(
    strategies: Sequence[Strategy],
    raw: Dict[str, Any],
    accept: Callable[[Any], bool] = lambda v: v not in (None, "", [], {}),
) -> Tuple[Optional[str], Any]:
    """Evaluate strategies in order; returns (strategy_name, value) of the first hit"""
    for name, extract in strategies:
        try:
            value = extract(raw)
        except (TypeError, ValueError, OverflowError, AttributeError, IndexError, KeyError) as e:
            logger.debug(f"Strategy {name} failed: {e}")
            continue
        if accept(value):
            return name, value
    return None, None


# Attributes


def _attribute_pairs(source: Any) -> Iterable[Tuple[Any, Any]]:
    """Yield (trait_type, value) from any of the attribute shapes providers use"""
    if isinstance(source, dict):
        for key, value in source.items():
            yield key, value
        return
    if not isinstance(source, list):
        return
    for item in source:
        if not isinstance(item, dict):
            continue
        if "trait_type" in item:
            yield item.get("trait_type"), item.get("value")
        elif isinstance(item.get("attribute"), dict):
            # objkt: {attribute: {name, type, value}}
            yield item["attribute"].get("name"), item["attribute"].get("value")
        elif "name" in item:
            yield item.get("name"), item.get("value")
        elif "key" in item:
            yield item.get("key"), item.get("value")


def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def normalize_attributes(*sources: Any) -> List[Attribute]:
    """
    Merge attribute sources into one list of Attribute

    Values are stringified, empty values dropped, and duplicates removed
    case-insensitively on (trait_type, value) keeping first-seen order.
    """
    seen = set()
    result: List[Attribute] = []
    for source in sources:
        for trait_type, value in _attribute_pairs(source):
            trait_text = _stringify(trait_type)
            value_text = _stringify(value)
            if not trait_text or value_text is None:
                continue
            key = (trait_text.lower(), value_text.lower())
            if key in seen:
                continue
            seen.add(key)
            result.append(Attribute(trait_type=trait_text, value=value_text))
    return result


# Dates


def parse_mint_date(value: Any) -> Optional[datetime]:
    """
    Parse ISO strings, unix seconds or milliseconds into an aware datetime

    Unparseable or implausible values are logged and discarded.
    """
    if value in (None, ""):
        return None
    parsed: Optional[datetime] = None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)) or (isinstance(value, str) and re.fullmatch(r"\d+(\.\d+)?", value.strip())):
            number = float(value)
            if number > 1e12:
                number /= 1000
            parsed = datetime.fromtimestamp(number, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
    except (ValueError, OverflowError, OSError) as e:
        logger.warning(f"Discarding unparseable mint date {value!r}: {e}")
        return None

    if parsed is None:
        logger.warning(f"Discarding unsupported mint date {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if parsed < EARLIEST_MINT or parsed > datetime.now(timezone.utc) + timedelta(days=1):
        logger.warning(f"Discarding implausible mint date {value!r}")
        return None
    return parsed


# Dimensions


def _dims_from_pair(width: Any, height: Any) -> Optional[Dimensions]:
    w = coerce_positive_int(width)
    h = coerce_positive_int(height)
    if w and h:
        return Dimensions(width=w, height=h)
    return None


def parse_dimensions(data: Any) -> Optional[Dimensions]:
    """Understands {width, height}, "WxH" strings and objkt's nested artifact/display blocks"""
    if not data:
        return None
    if isinstance(data, str):
        match = re.search(r"(\d+)\s*[x×]\s*(\d+)", data, re.IGNORECASE)
        return _dims_from_pair(match.group(1), match.group(2)) if match else None
    if not isinstance(data, dict):
        return None
    for variant in ("artifact", "display", "thumbnail"):
        nested = dig(data, variant, "dimensions")
        if nested:
            dims = parse_dimensions(nested)
            if dims:
                return dims
    if "value" in data and isinstance(data["value"], str):
        return parse_dimensions(data["value"])
    return _dims_from_pair(data.get("width"), data.get("height"))


def dimensions_from_attributes(attributes: List[Attribute]) -> Optional[Dimensions]:
    by_name = {a.trait_type.lower(): a.value for a in attributes}
    if "dimensions" in by_name:
        return parse_dimensions(by_name["dimensions"])
    return _dims_from_pair(by_name.get("width"), by_name.get("height"))


# MIME


def guess_mime_from_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    if url.startswith("data:"):
        return url[5:].split(";", 1)[0].split(",", 1)[0] or None
    path = urlparse(url).path
    if "." not in path.rsplit("/", 1)[-1]:
        return None
    extension = path.rsplit(".", 1)[-1].lower()
    return MIME_BY_EXTENSION.get(extension)


def is_animation_mime(mime: Optional[str]) -> bool:
    if not mime:
        return False
    mime = mime.lower()
    return (
        mime.startswith("video/")
        or mime == "image/gif"
        or mime == "text/html"
        or mime.startswith("application/")
    )


def is_still_image_mime(mime: Optional[str]) -> bool:
    return bool(mime) and mime.lower().startswith("image/") and mime.lower() != "image/gif"


# Social links


def extract_social_links(*sources: Optional[Dict[str, Any]]) -> Dict[str, str]:
    links: Dict[str, str] = {}
    for source in sources:
        if not isinstance(source, dict):
            continue
        for account in source.get("social_media_accounts") or []:
            if isinstance(account, dict) and account.get("platform") and account.get("username"):
                links.setdefault(str(account["platform"]).lower(), str(account["username"]))
        for platform in SOCIAL_PLATFORMS:
            value = clean_text(source.get(platform)) or clean_text(source.get(f"{platform}_username"))
            if value:
                links.setdefault(platform, value)
        if clean_text(source.get("website_url")):
            links.setdefault("website", source["website_url"])
    return links


# Strategy tables

OPENSEA_STRATEGIES: Dict[str, List[Strategy]] = {
    "contract": [
        ("contract", lambda r: r.get("contract")),
        ("asset_contract.address", lambda r: dig(r, "asset_contract", "address")),
        ("contract_address", lambda r: r.get("contract_address")),
    ],
    "token_id": [
        ("identifier", lambda r: r.get("identifier")),
        ("token_id", lambda r: r.get("token_id")),
    ],
    "title": [
        ("name", lambda r: clean_text(r.get("name"))),
        ("metadata.name", lambda r: clean_text(dig(r, "metadata", "name"))),
    ],
    "description": [
        ("description", lambda r: clean_text(r.get("description"))),
        ("metadata.description", lambda r: clean_text(dig(r, "metadata", "description"))),
    ],
    "image": [
        ("image_original_url", lambda r: r.get("image_original_url")),
        ("image_url", lambda r: r.get("image_url")),
        ("display_image_url", lambda r: r.get("display_image_url")),
        ("metadata.image", lambda r: dig(r, "metadata", "image")),
        ("image", lambda r: r.get("image")),
    ],
    "thumbnail": [
        ("display_image_url", lambda r: r.get("display_image_url")),
        ("image_thumbnail_url", lambda r: r.get("image_thumbnail_url")),
        ("image_preview_url", lambda r: r.get("image_preview_url")),
    ],
    "animation": [
        ("animation_url", lambda r: r.get("animation_url")),
        ("display_animation_url", lambda r: r.get("display_animation_url")),
        ("metadata.animation_url", lambda r: dig(r, "metadata", "animation_url")),
    ],
    "generator": [
        ("generator_url", lambda r: r.get("generator_url")),
        ("generatorUrl", lambda r: r.get("generatorUrl")),
        ("metadata.generator_url", lambda r: dig(r, "metadata", "generator_url")),
        ("metadata.generatorUrl", lambda r: dig(r, "metadata", "generatorUrl")),
    ],
    "metadata_url": [
        ("metadata_url", lambda r: r.get("metadata_url")),
        ("token_uri", lambda r: r.get("token_uri")),
    ],
    "token_standard": [
        ("token_standard", lambda r: clean_text(r.get("token_standard")).upper()),
        ("asset_contract.schema_name", lambda r: clean_text(dig(r, "asset_contract", "schema_name")).upper()),
    ],
    "mime": [
        ("metadata.mime", lambda r: dig(r, "metadata", "mime")),
        ("mime_type", lambda r: r.get("mime_type")),
    ],
    "symbol": [
        ("symbol", lambda r: clean_text(r.get("symbol"))),
        ("metadata.symbol", lambda r: clean_text(dig(r, "metadata", "symbol"))),
    ],
    "supply": [
        ("supply", lambda r: coerce_positive_int(r.get("supply"))),
        ("total_supply", lambda r: coerce_positive_int(r.get("total_supply"))),
        ("edition_size", lambda r: coerce_positive_int(r.get("edition_size"))),
        ("metadata.edition_size", lambda r: coerce_positive_int(dig(r, "metadata", "edition_size"))),
    ],
    # Never updated_at / last_* fields
    "mint_date": [
        ("minted_at", lambda r: r.get("minted_at")),
        ("mint_date", lambda r: r.get("mint_date")),
        ("mint_timestamp", lambda r: r.get("mint_timestamp")),
        ("created_date", lambda r: r.get("created_date")),
        ("created_at", lambda r: r.get("created_at")),
        ("metadata.date", lambda r: dig(r, "metadata", "date")),
    ],
    "creator_address": [
        ("creator", lambda r: r.get("creator") if isinstance(r.get("creator"), str) else None),
        ("creator.address", lambda r: dig(r, "creator", "address")),
        ("metadata.created_by", lambda r: dig(r, "metadata", "created_by")),
    ],
    "collection_slug": [
        ("collection", lambda r: r.get("collection") if isinstance(r.get("collection"), str) else None),
        ("collection.slug", lambda r: dig(r, "collection", "slug")),
    ],
    "collection_name": [
        ("collection.name", lambda r: clean_text(dig(r, "collection", "name"))),
        ("collection_name", lambda r: clean_text(r.get("collection_name"))),
    ],
    "dimensions": [
        ("metadata.dimensions", lambda r: parse_dimensions(dig(r, "metadata", "dimensions"))),
        ("dimensions", lambda r: parse_dimensions(r.get("dimensions"))),
        ("metadata.image_details", lambda r: parse_dimensions(dig(r, "metadata", "image_details"))),
        ("image_details", lambda r: parse_dimensions(r.get("image_details"))),
    ],
}


def _tezos_artifact_if(predicate: Callable[[Optional[str]], bool]) -> Callable[[Dict[str, Any]], Any]:
    def extract(r: Dict[str, Any]) -> Any:
        artifact = r.get("artifact_uri")
        mime = r.get("mime") or guess_mime_from_url(artifact)
        return artifact if predicate(mime) else None
    return extract


OBJKT_STRATEGIES: Dict[str, List[Strategy]] = {
    "contract": [
        ("fa_contract", lambda r: r.get("fa_contract")),
        ("fa.contract", lambda r: dig(r, "fa", "contract")),
    ],
    "token_id": [
        ("token_id", lambda r: r.get("token_id")),
    ],
    "title": [
        ("name", lambda r: clean_text(r.get("name"))),
    ],
    "description": [
        ("description", lambda r: clean_text(r.get("description"))),
    ],
    "image": [
        ("display_uri", lambda r: r.get("display_uri")),
        ("artifact_uri:image", _tezos_artifact_if(lambda m: m is None or m.startswith("image/"))),
        ("thumbnail_uri", lambda r: r.get("thumbnail_uri")),
    ],
    "thumbnail": [
        ("thumbnail_uri", lambda r: r.get("thumbnail_uri")),
    ],
    "animation": [
        ("artifact_uri:animated", _tezos_artifact_if(is_animation_mime)),
    ],
    "generator": [
        ("generator_url", lambda r: r.get("generator_url")),
        ("generatorUrl", lambda r: r.get("generatorUrl")),
        ("metadata.generator_url", lambda r: dig(r, "metadata", "generator_url")),
        ("metadata.generatorUrl", lambda r: dig(r, "metadata", "generatorUrl")),
    ],
    "metadata_url": [
        ("metadata", lambda r: r.get("metadata") if isinstance(r.get("metadata"), str) else None),
    ],
    "token_standard": [
        ("fa2", lambda r: "FA2"),
    ],
    "mime": [
        ("mime", lambda r: r.get("mime")),
        ("dimensions.artifact.mime", lambda r: dig(r, "dimensions", "artifact", "mime")),
        ("dimensions.display.mime", lambda r: dig(r, "dimensions", "display", "mime")),
    ],
    "symbol": [
        ("symbol", lambda r: clean_text(r.get("symbol"))),
    ],
    "supply": [
        ("supply", lambda r: coerce_positive_int(r.get("supply"))),
    ],
    "mint_date": [
        ("timestamp", lambda r: r.get("timestamp")),
        ("minted_at", lambda r: r.get("minted_at")),
    ],
    "creator_address": [
        ("creators[0].creator_address", lambda r: r["creators"][0]["creator_address"]),
        ("creators[0].holder.address", lambda r: r["creators"][0]["holder"]["address"]),
    ],
    "collection_slug": [
        ("fa.contract", lambda r: dig(r, "fa", "contract")),
    ],
    "collection_name": [
        ("fa.name", lambda r: clean_text(dig(r, "fa", "name"))),
    ],
    "dimensions": [
        ("dimensions", lambda r: parse_dimensions(r.get("dimensions"))),
    ],
}

STRATEGIES: Dict[Provider, Dict[str, List[Strategy]]] = {
    Provider.OPENSEA: OPENSEA_STRATEGIES,
    Provider.OBJKT: OBJKT_STRATEGIES,
}


def _usable_media(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip()) and not platforms.is_placeholder(value)


class NFTTransformer:
    """
    Raw provider record → CanonicalArtwork

    With an ``enrichment_client`` the async ``transform`` also hydrates thin
    list records, looks up collection and creator profiles, and (optionally)
    the mint date. Lookup failures degrade to what the record already holds.
    """

    def __init__(
        self,
        enrichment_client: Optional[BaseProviderClient] = None,
        hydrate_items: bool = True,
        resolve_mint_dates: bool = False,
    ):
        self.client = enrichment_client
        self.hydrate_items = hydrate_items
        self.resolve_mint_dates = resolve_mint_dates

    async def transform(
        self,
        raw: Dict[str, Any],
        source: Provider,
        blockchain: Optional[Blockchain] = None,
    ) -> CanonicalArtwork:
        source = Provider(source)
        blockchain = blockchain or source.default_blockchain
        contract, token_id = self._identity(raw, source, blockchain)

        if self.client is None:
            return self._build(raw, source, blockchain, contract, token_id)

        record = await self._hydrate(raw, source, contract, token_id)
        strategies = STRATEGIES[source]

        _, slug = first_value(strategies["collection_slug"], record)
        collection_info = await self._safe_lookup(
            "collection", slug or contract, lambda: self.client.fetch_collection(slug or contract)
        )

        creator_info = None
        _, creator_address = first_value(strategies["creator_address"], record)
        if creator_address and not self._embedded_profile(record, source):
            creator_info = await self._safe_lookup(
                "account", creator_address, lambda: self.client.fetch_account(creator_address)
            )

        mint_date = None
        _, raw_date = first_value(strategies["mint_date"], record)
        if raw_date is None and self.resolve_mint_dates and hasattr(self.client, "fetch_mint_date"):
            mint_date = await self._safe_lookup(
                "mint date", f"{contract}:{token_id}", lambda: self.client.fetch_mint_date(contract, token_id)
            )

        return self._build(
            record,
            source,
            blockchain,
            contract,
            token_id,
            collection_info=collection_info,
            creator_info=creator_info,
            mint_date=mint_date,
        )

    def transform_sync(
        self,
        raw: Dict[str, Any],
        source: Provider,
        blockchain: Optional[Blockchain] = None,
    ) -> CanonicalArtwork:
        """Transform using only what the record carries"""
        source = Provider(source)
        blockchain = blockchain or source.default_blockchain
        contract, token_id = self._identity(raw, source, blockchain)
        return self._build(raw, source, blockchain, contract, token_id)

    def _identity(self, raw: Dict[str, Any], source: Provider, blockchain: Blockchain) -> Tuple[str, str]:
        if not isinstance(raw, dict):
            raise MissingRequiredFields(["contract_address", "token_id"], source=source.value)
        strategies = STRATEGIES[source]
        _, contract = first_value(strategies["contract"], raw, accept=lambda v: isinstance(v, str) and bool(v.strip()))
        _, token_id = first_value(strategies["token_id"], raw, accept=lambda v: v is not None and str(v).strip() != "")
        missing = []
        if not contract:
            missing.append("contract_address")
        if token_id is None:
            missing.append("token_id")
        if missing:
            raise MissingRequiredFields(missing, source=source.value)
        return normalize_contract(contract, blockchain), str(token_id).strip()

    async def _hydrate(self, raw: Dict[str, Any], source: Provider, contract: str, token_id: str) -> Dict[str, Any]:
        """OpenSea list records lack traits and creator; fetch the detail record"""
        if not self.hydrate_items or source != Provider.OPENSEA or "traits" in raw:
            return raw
        detail = await self._safe_lookup(
            "item", f"{contract}:{token_id}", lambda: self.client.fetch_item(contract, token_id)
        )
        if not detail:
            return raw
        return {**detail, **{k: v for k, v in raw.items() if v not in (None, "")}}

    async def _safe_lookup(self, kind: str, key: str, loader: Callable[[], Any]) -> Any:
        try:
            return await loader()
        except IndexerError as e:
            logger.warning(f"{kind.capitalize()} enrichment failed for {key}: {e}")
            return None

    @staticmethod
    def _embedded_profile(record: Dict[str, Any], source: Provider) -> bool:
        if source == Provider.OBJKT:
            creators = record.get("creators") or []
            holder = creators[0].get("holder") if creators and isinstance(creators[0], dict) else None
            return bool(isinstance(holder, dict) and (holder.get("alias") or holder.get("logo")))
        creator = record.get("creator")
        return isinstance(creator, dict) and bool(dig(creator, "user", "username") or creator.get("profile_img_url"))

    def _build(
        self,
        record: Dict[str, Any],
        source: Provider,
        blockchain: Blockchain,
        contract: str,
        token_id: str,
        collection_info: Optional[Dict[str, Any]] = None,
        creator_info: Optional[Dict[str, Any]] = None,
        mint_date: Optional[datetime] = None,
    ) -> CanonicalArtwork:
        strategies = STRATEGIES[source]

        def pick(field: str, **kwargs) -> Any:
            return first_value(strategies[field], record, **kwargs)[1]

        collection = self._build_collection(record, source, blockchain, contract, collection_info)

        # Media precedence, identical for every provider
        image_url = pick("image", accept=_usable_media)
        thumbnail_url = pick(
            "thumbnail", accept=lambda v: _usable_media(v) and v != image_url
        )
        animation_url = pick("animation", accept=_usable_media)
        # An explicit generator field wins over templates and heuristics
        generator_url = pick("generator", accept=_usable_media)
        if generator_url is None and collection.is_generative_art:
            generator_url = platforms.build_generator_url(contract, token_id, blockchain)
            if not generator_url:
                generator_url = self._interactive_candidate(record, animation_url)
        if generator_url and generator_url == animation_url:
            animation_url = None
        if image_url is None and animation_url and is_still_image_mime(guess_mime_from_url(animation_url)):
            image_url, animation_url = animation_url, None
        if animation_url and animation_url == image_url:
            animation_url = None

        attributes = normalize_attributes(
            record.get("attributes"),
            record.get("traits"),
            record.get("properties") or dig(record, "metadata", "properties"),
            dig(record, "metadata", "features") or record.get("features"),
        )
        features = dig(record, "metadata", "features") or record.get("features") or {}
        if not isinstance(features, dict):
            features = {}

        dimensions = pick("dimensions") or dimensions_from_attributes(attributes)

        mime = pick("mime", accept=lambda v: isinstance(v, str) and "/" in v)
        if not mime:
            mime = guess_mime_from_url(animation_url or image_url)

        if mint_date is None:
            for name, extract in strategies["mint_date"]:
                value = extract(record)
                if value in (None, ""):
                    continue
                mint_date = parse_mint_date(value)
                if mint_date:
                    break
                logger.debug(f"Mint date strategy {name} yielded unusable {value!r}")

        creator = self._build_creator(record, source, blockchain, creator_info, collection, collection_info)

        artwork = CanonicalArtwork(
            contract_address=contract,
            token_id=token_id,
            blockchain=blockchain,
            title=pick("title"),
            description=pick("description"),
            image_url=image_url,
            thumbnail_url=thumbnail_url,
            animation_url=animation_url,
            generator_url=generator_url,
            metadata_url=pick("metadata_url"),
            token_standard=pick("token_standard"),
            mime=mime,
            symbol=pick("symbol"),
            supply=pick("supply") or 1,
            dimensions=dimensions,
            mint_date=mint_date,
            attributes=attributes,
            features=features,
            creator=creator,
            collection=collection,
            source=source,
        )
        if not artwork.image_url and not artwork.animation_url:
            logger.warning(f"{artwork.uid} has no image or animation media")
        return artwork

    @staticmethod
    def _interactive_candidate(record: Dict[str, Any], animation_url: Optional[str]) -> Optional[str]:
        """Live-code URL of a generative token: an HTML animation or an interactive artifact"""
        artifact = record.get("artifact_uri")
        artifact_mime = (record.get("mime") or "").lower()
        for candidate in (animation_url, artifact):
            if not candidate or platforms.is_placeholder(candidate):
                continue
            if platforms.looks_like_generator(candidate) or guess_mime_from_url(candidate) == "text/html":
                return candidate
            if candidate == artifact and artifact_mime in ("text/html", "application/x-directory"):
                return candidate
        return None

    def _build_collection(
        self,
        record: Dict[str, Any],
        source: Provider,
        blockchain: Blockchain,
        contract: str,
        info: Optional[Dict[str, Any]],
    ) -> Collection:
        strategies = STRATEGIES[source]
        info = info or {}
        _, slug = first_value(strategies["collection_slug"], record)
        _, name = first_value(strategies["collection_name"], record)

        if source == Provider.OPENSEA:
            name = clean_text(info.get("name")) or name
            description = clean_text(info.get("description"))
            website = info.get("project_url") or info.get("external_url") or info.get("website_url")
            image = info.get("image_url")
            banner = info.get("banner_image_url")
            total_supply = coerce_positive_int(info.get("total_supply"))
            floor_price = None
            mint_start = parse_mint_date(info.get("created_date")) if info.get("created_date") else None
            project_number = coerce_positive_int(
                info.get("project_number") or dig(record, "metadata", "project_id")
            )
        else:
            fa = record.get("fa") if isinstance(record.get("fa"), dict) else {}
            name = clean_text(info.get("name")) or name
            description = clean_text(info.get("description")) or clean_text(fa.get("description"))
            website = info.get("website") or fa.get("website")
            image = info.get("logo") or fa.get("logo")
            banner = None
            total_supply = coerce_positive_int(info.get("editions") or info.get("items"))
            floor = info.get("floor_price")
            # objkt reports prices in mutez
            floor_price = float(floor) / 1_000_000 if isinstance(floor, (int, float)) else None
            mint_start = parse_mint_date(info.get("timestamp")) if info.get("timestamp") else None
            project_number = None

        # A slug that is just the contract address says nothing about the platform
        label = name or (slug if slug and slug != contract else None)
        return Collection(
            slug=slug or contract,
            title=name,
            description=description,
            contract_address=contract,
            website_url=website,
            discord_url=info.get("discord_url"),
            telegram_url=info.get("telegram_url"),
            image_url=image,
            banner_image_url=banner,
            is_generative_art=platforms.is_generative(contract, label, blockchain),
            is_shared_contract=platforms.is_shared_contract(contract, blockchain),
            platform=platforms.resolve_platform(contract, label, blockchain),
            floor_price=floor_price,
            total_supply=total_supply,
            mint_start=mint_start,
            project_number=project_number,
        )

    def _build_creator(
        self,
        record: Dict[str, Any],
        source: Provider,
        blockchain: Blockchain,
        info: Optional[Dict[str, Any]],
        collection: Collection,
        collection_info: Optional[Dict[str, Any]],
    ) -> Optional[Creator]:
        _, address = first_value(STRATEGIES[source]["creator_address"], record)

        if not address and not collection.is_shared_contract and collection_info:
            # Single-artist contracts: the collection owner is the artist
            address = collection_info.get("owner") or collection_info.get("creator_address")

        if not address:
            return None
        address = normalize_contract(str(address), blockchain)

        deployer = normalize_contract((collection_info or {}).get("owner"), blockchain)
        if collection.is_shared_contract and address in (collection.contract_address, deployer):
            logger.debug(f"Ignoring deployer {address} as creator of shared contract {collection.contract_address}")
            return None

        if source == Provider.OBJKT:
            creators = record.get("creators") or []
            holder = creators[0].get("holder") if creators and isinstance(creators[0], dict) else None
            profile = info or (holder if isinstance(holder, dict) else {}) or {}
            links = extract_social_links(profile)
            return Creator(
                address=address,
                username=clean_text(profile.get("alias")),
                display_name=clean_text(profile.get("alias")),
                bio=clean_text(profile.get("description")),
                avatar_url=clean_text(profile.get("logo")),
                website_url=clean_text(profile.get("website")),
                profile_url=f"https://objkt.com/profile/{address}",
                twitter=links.get("twitter"),
                instagram=links.get("instagram"),
                discord=links.get("discord"),
                social_links=links,
                resolution_source="objkt" if profile else None,
            )

        embedded = record.get("creator") if isinstance(record.get("creator"), dict) else {}
        profile = info or {}
        username = (
            clean_text(profile.get("username"))
            or clean_text(dig(embedded, "user", "username"))
        )
        links = extract_social_links(profile)
        return Creator(
            address=address,
            username=username,
            display_name=clean_text(profile.get("display_name")) or username,
            bio=clean_text(profile.get("bio")),
            avatar_url=clean_text(profile.get("profile_image_url")) or clean_text(embedded.get("profile_img_url")),
            website_url=clean_text(profile.get("website")) or clean_text(profile.get("website_url")),
            profile_url=f"https://opensea.io/{username or address}",
            is_verified=bool(profile.get("is_verified") or embedded.get("config") == "verified"),
            twitter=links.get("twitter"),
            instagram=links.get("instagram"),
            discord=links.get("discord"),
            social_links=links,
            resolution_source="opensea" if (profile or embedded) else None,
        )
