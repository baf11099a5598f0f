"""Unit tests for the provider registry and the upload → redirect pipeline.

Covers:
  - registry order, lookup, unknown key → UnknownProviderError (404)
  - encodeURIComponent-compatible URL construction for every provider
  - resolve_search: direct (public URL), uploaded (data URL / base64),
    manual fallback (storage not configured, undecodable data),
    InvalidImageError for empty or non-http input
"""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from veritas.errors import InvalidImageError, UnknownProviderError
from veritas.search.providers import (
    PROVIDER_KEYS,
    PROVIDERS,
    build_search_url,
    encode_uri_component,
    get_provider,
)
from veritas.search.redirect import resolve_search
from veritas.storage import UnconfiguredBlobStore
from veritas.storage.local import LocalBlobStore

IMAGE_URL = "https://cdn.example.com/photos/cat 1.jpg?size=large&v=2"
ENCODED = "https%3A%2F%2Fcdn.example.com%2Fphotos%2Fcat%201.jpg%3Fsize%3Dlarge%26v%3D2"


# ─── Registry ─────────────────────────────────────────────────────────────────


class TestProviderRegistry:
    def test_order(self) -> None:
        assert PROVIDER_KEYS == ("google", "google_lens", "tineye", "bing", "yandex")

    def test_every_provider_has_landing_page_and_steps(self) -> None:
        for provider in PROVIDERS:
            assert provider.landing_url.startswith("https://")
            assert len(provider.manual_steps) >= 3

    def test_unknown_provider(self) -> None:
        with pytest.raises(UnknownProviderError) as exc_info:
            get_provider("altavista")
        assert exc_info.value.status_code == 404

    def test_to_dict(self) -> None:
        body = get_provider("tineye").to_dict()
        assert body["key"] == "tineye"
        assert body["name"] == "TinEye"
        assert body["landingUrl"] == "https://tineye.com"
        assert isinstance(body["manualSteps"], list)


class TestBuildSearchUrl:
    def test_encode_uri_component(self) -> None:
        assert encode_uri_component(IMAGE_URL) == ENCODED
        assert encode_uri_component("a-b_c.d!e~f*g'h(i)") == "a-b_c.d!e~f*g'h(i)"

    @pytest.mark.parametrize(
        ("key", "prefix"),
        [
            ("google", "https://www.google.com/searchbyimage?image_url="),
            ("google_lens", "https://lens.google.com/uploadbyurl?url="),
            ("tineye", "https://tineye.com/search?url="),
            (
                "bing",
                "https://www.bing.com/images/search?view=detailv2&iss=1&FORM=IRSBIQ&cbir=sbi&imgurl=",
            ),
            ("yandex", "https://yandex.com/images/search?rpt=imageview&url="),
        ],
    )
    def test_provider_urls(self, key: str, prefix: str) -> None:
        assert build_search_url(get_provider(key), IMAGE_URL) == prefix + ENCODED


# ─── resolve_search ───────────────────────────────────────────────────────────


@pytest.fixture
def local_store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(tmp_path, public_base_url="https://veritas.example.org")


class TestResolveSearch:
    @pytest.mark.asyncio
    async def test_public_url_is_direct(self, local_store: LocalBlobStore, tmp_path: Path) -> None:
        redirect = await resolve_search("tineye", IMAGE_URL, local_store)

        assert redirect.method == "direct"
        assert redirect.search_url == "https://tineye.com/search?url=" + ENCODED
        assert redirect.public_url == IMAGE_URL
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_data_url_is_uploaded(
        self, local_store: LocalBlobStore, tmp_path: Path, jpeg_data_url: str
    ) -> None:
        redirect = await resolve_search("yandex", jpeg_data_url, local_store)

        assert redirect.method == "uploaded"
        assert redirect.public_url.startswith("https://veritas.example.org/uploads/img_")
        assert redirect.search_url == (
            "https://yandex.com/images/search?rpt=imageview&url="
            + encode_uri_component(redirect.public_url)
        )
        assert len(list(tmp_path.iterdir())) == 1

    @pytest.mark.asyncio
    async def test_bare_base64_is_uploaded(self, local_store: LocalBlobStore, jpeg_bytes: bytes) -> None:
        redirect = await resolve_search("bing", base64.b64encode(jpeg_bytes).decode(), local_store)
        assert redirect.method == "uploaded"

    @pytest.mark.asyncio
    async def test_storage_not_configured_falls_back_to_manual(self, jpeg_data_url: str) -> None:
        redirect = await resolve_search("google", jpeg_data_url, UnconfiguredBlobStore())

        assert redirect.method == "manual"
        assert redirect.search_url is None
        assert redirect.landing_url == "https://images.google.com"
        assert redirect.manual_steps == get_provider("google").manual_steps
        assert "BLOB_READ_WRITE_TOKEN" in redirect.error

        body = redirect.to_dict()
        assert body["success"] is False
        assert body["method"] == "manual"
        assert body["landingUrl"] == "https://images.google.com"
        assert body["manualSteps"]

    @pytest.mark.asyncio
    async def test_bad_base64_falls_back_to_manual(self, local_store: LocalBlobStore) -> None:
        redirect = await resolve_search("google_lens", "data:image/png;base64,%%%", local_store)
        assert redirect.method == "manual"
        assert redirect.error

    @pytest.mark.asyncio
    async def test_uploaded_to_dict(self, local_store: LocalBlobStore, jpeg_data_url: str) -> None:
        body = (await resolve_search("tineye", jpeg_data_url, local_store)).to_dict()
        assert body["success"] is True
        assert body["provider"] == "tineye"
        assert body["providerName"] == "TinEye"
        assert body["searchUrl"].startswith("https://tineye.com/search?url=")
        assert "manualSteps" not in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("image", [None, "", "   ", "ftp://example.com/a.jpg", "javascript:alert(1)"])
    async def test_invalid_input_raises(self, local_store: LocalBlobStore, image) -> None:
        with pytest.raises(InvalidImageError):
            await resolve_search("google", image, local_store)

    @pytest.mark.asyncio
    async def test_unknown_provider_checked_first(self, local_store: LocalBlobStore) -> None:
        with pytest.raises(UnknownProviderError):
            await resolve_search("altavista", None, local_store)
