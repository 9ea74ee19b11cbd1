"""
Media URI classification and gateway candidate URLs
"""

import base64
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import unquote_to_bytes, urlparse

from ..config import MediaConfig
from ..errors import FetchError

CID_PATTERN = r"(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{58,})"
BARE_CID_RE = re.compile(rf"^{CID_PATTERN}(/.*)?$")
IPFS_PATH_RE = re.compile(rf"/ipfs/{CID_PATTERN}(/[^?#]*)?")
ARWEAVE_TX_RE = re.compile(r"^[A-Za-z0-9_-]{43}$")


class UriKind(str, Enum):
    DATA = "data"
    ARWEAVE = "arweave"
    ONCHFS = "onchfs"
    IPFS = "ipfs"
    HTTP = "http"


@dataclass
class ClassifiedUri:
    """A media URI with the path needed to build gateway URLs for it"""
    kind: UriKind
    original: str
    path: str = ""
    candidates: List[str] = field(default_factory=list)
    timeout: float = 15


def _strip_ipfs_prefix(uri: str) -> str:
    for prefix in ("ipfs://ipfs/", "ipfs://", "ipfs:/"):
        if uri.startswith(prefix):
            return uri[len(prefix):]
    return uri


def extract_cid_path(uri: str) -> Optional[str]:
    """
    CID plus sub-path for any IPFS reference, or None

    Query strings and fragments are dropped; gateways serve content by path
    alone and some reject unknown parameters.
    """
    uri = uri.strip()
    if uri.startswith("ipfs:"):
        rest = _strip_ipfs_prefix(uri).split("?", 1)[0].split("#", 1)[0]
        return rest.strip("/") or None
    bare = BARE_CID_RE.match(uri)
    if bare:
        return uri.split("?", 1)[0].split("#", 1)[0]
    match = IPFS_PATH_RE.search(uri)
    if match:
        return match.group(1) + (match.group(2) or "")
    return None


def _arweave_path(uri: str) -> Optional[str]:
    if uri.startswith("ar://"):
        return uri[len("ar://"):].strip("/") or None
    parsed = urlparse(uri)
    if parsed.scheme in ("http", "https") and parsed.hostname and parsed.hostname.endswith("arweave.net"):
        return parsed.path.strip("/") or None
    if ARWEAVE_TX_RE.match(uri):
        return uri
    return None


def classify_uri(uri: str, config: Optional[MediaConfig] = None) -> ClassifiedUri:
    """
    Classify a media URI and list the URLs to try, in order

    Raises:
        FetchError: empty or unrecognised URI
    """
    config = config or MediaConfig()
    if not uri or not isinstance(uri, str) or not uri.strip():
        raise FetchError(str(uri), "empty uri")
    uri = uri.strip()

    if uri.startswith("data:"):
        return ClassifiedUri(UriKind.DATA, uri)

    arweave = _arweave_path(uri)
    if arweave:
        return ClassifiedUri(
            UriKind.ARWEAVE,
            uri,
            path=arweave,
            candidates=[config.arweave_gateway.rstrip("/") + "/" + arweave],
            timeout=config.arweave_timeout,
        )

    if uri.startswith("onchfs://"):
        path = uri[len("onchfs://"):].strip("/")
        if not path:
            raise FetchError(uri, "empty onchfs path")
        return ClassifiedUri(
            UriKind.ONCHFS,
            uri,
            path=path,
            candidates=[config.onchfs_gateway.rstrip("/") + "/" + path],
            timeout=config.http_timeout,
        )

    cid_path = extract_cid_path(uri)
    if cid_path:
        return ClassifiedUri(
            UriKind.IPFS,
            uri,
            path=cid_path,
            candidates=[gateway.rstrip("/") + "/" + cid_path for gateway in config.ipfs_gateways],
            timeout=config.gateway_timeout,
        )

    parsed = urlparse(uri)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return ClassifiedUri(UriKind.HTTP, uri, path=parsed.path, candidates=[uri], timeout=config.http_timeout)

    raise FetchError(uri, "unrecognised uri scheme")


def decode_data_uri(uri: str) -> Tuple[bytes, Optional[str]]:
    """
    Decode a data URI into (bytes, declared mime)

    Raises:
        FetchError: malformed payload
    """
    try:
        header, payload = uri[len("data:"):].split(",", 1)
    except ValueError:
        raise FetchError(uri[:64], "malformed data uri")

    parts = header.split(";")
    mime = parts[0] or None
    try:
        if "base64" in parts[1:]:
            data = base64.b64decode(payload, validate=False)
        else:
            data = unquote_to_bytes(payload)
    except (ValueError, TypeError) as e:
        raise FetchError(uri[:64], f"undecodable data uri: {e}")
    if not data:
        raise FetchError(uri[:64], "empty data uri")
    return data, mime
