"""
Tests for media URI classification and data URI decoding
"""

import pytest

from artwork_indexer.config import MediaConfig
from artwork_indexer.errors import FetchError
from artwork_indexer.media.uris import UriKind, classify_uri, decode_data_uri, extract_cid_path

from conftest import CID

ARWEAVE_TX = "bNbA3TEQVL60xlgCcqdz4ZPHFZ711cZ3hmkpGttDt_U"


class TestExtractCidPath:
    @pytest.mark.parametrize(
        "uri, expected",
        [
            (f"ipfs://{CID}", CID),
            (f"ipfs://{CID}/1.png", f"{CID}/1.png"),
            (f"ipfs://ipfs/{CID}/1.png", f"{CID}/1.png"),
            (f"ipfs:/{CID}", CID),
            (CID, CID),
            (f"https://gateway.pinata.cloud/ipfs/{CID}/art.png?img-width=200", f"{CID}/art.png"),
            (f"ipfs://{CID}/index.html?fxhash=oo1", f"{CID}/index.html"),
        ],
    )
    def test_variants(self, uri, expected):
        assert extract_cid_path(uri) == expected

    def test_non_ipfs(self):
        assert extract_cid_path("https://example.com/image.png") is None


class TestClassifyUri:
    def test_ipfs_uses_gateways_in_order(self):
        classified = classify_uri(f"ipfs://{CID}/1.png")

        assert classified.kind == UriKind.IPFS
        assert classified.candidates == [
            f"https://ipfs.io/ipfs/{CID}/1.png",
            f"https://dweb.link/ipfs/{CID}/1.png",
            f"https://nftstorage.link/ipfs/{CID}/1.png",
            f"https://gateway.pinata.cloud/ipfs/{CID}/1.png",
        ]
        assert classified.timeout == 10

    def test_custom_gateways(self):
        config = MediaConfig(ipfs_gateways=["https://my.gateway/ipfs"])
        classified = classify_uri(CID, config)

        assert classified.candidates == [f"https://my.gateway/ipfs/{CID}"]

    def test_arweave(self):
        for uri in (f"ar://{ARWEAVE_TX}", f"https://arweave.net/{ARWEAVE_TX}", ARWEAVE_TX):
            classified = classify_uri(uri)
            assert classified.kind == UriKind.ARWEAVE
            assert classified.candidates == [f"https://arweave.net/{ARWEAVE_TX}"]
            assert classified.timeout == 30

    def test_onchfs(self):
        classified = classify_uri("onchfs://5d0a8ab3/index.html")

        assert classified.kind == UriKind.ONCHFS
        assert classified.candidates == ["https://onchfs.fxhash2.xyz/5d0a8ab3/index.html"]

    def test_http(self):
        classified = classify_uri("https://example.com/a.png")

        assert classified.kind == UriKind.HTTP
        assert classified.candidates == ["https://example.com/a.png"]
        assert classified.timeout == 15

    def test_data(self):
        assert classify_uri("data:image/png;base64,AAAA").kind == UriKind.DATA

    @pytest.mark.parametrize("uri", ["", "   ", "ftp://example.com/a.png", "not a uri"])
    def test_rejects_unusable(self, uri):
        with pytest.raises(FetchError):
            classify_uri(uri)


class TestDecodeDataUri:
    def test_base64(self):
        data, mime = decode_data_uri("data:text/plain;base64,aGVsbG8=")
        assert data == b"hello"
        assert mime == "text/plain"

    def test_percent_encoded(self):
        data, mime = decode_data_uri("data:image/svg+xml,%3Csvg%3E%3C%2Fsvg%3E")
        assert data == b"<svg></svg>"
        assert mime == "image/svg+xml"

    def test_malformed(self):
        with pytest.raises(FetchError):
            decode_data_uri("data:image/png;base64")
