"""Automated reverse image search and the per-provider search catalogue.

Two request shapes reach /api/reverse-search:

  {imageUrl}   → run_reverse_search(): query every configured API provider
                 (TinEye, Bing Visual Search) concurrently and merge matches.
  {imageData}  → build_search_catalogue(): publish the image once and return
                 a search URL plus manual steps for every browser provider.

A provider that errors contributes no matches; it never fails the request.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import httpx

from veritas.config import SearchConfig
from veritas.errors import (
    InvalidImageError,
    PayloadTooLargeError,
    StorageError,
    StorageNotConfigured,
    UpstreamUnavailableError,
)
from veritas.images.dataurl import decode_data_url
from veritas.search.providers import PROVIDERS, build_search_url
from veritas.storage.protocol import BlobStore
from veritas.storage.uploader import store_image
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

TINEYE_SEARCH_URL = "https://api.tineye.com/rest/search/"
CLIENT_USER_AGENT = "Veritas Image Analyzer/1.0"

NO_KEYS_MESSAGE = (
    "No reverse search API keys configured. Please configure TinEye or Bing "
    "Visual Search API keys to enable automated reverse search. You can still "
    "use the external search buttons for manual reverse search."
)
NO_MATCHES_MESSAGE = "No similar images found"


@dataclass(frozen=True)
class SearchMatch:
    source: str
    url: str
    score: float
    image_url: Optional[str] = None
    title: Optional[str] = None
    published_date: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"source": self.source, "url": self.url, "score": self.score}
        if self.image_url is not None:
            body["imageUrl"] = self.image_url
        if self.title is not None:
            body["title"] = self.title
        if self.published_date is not None:
            body["publishedDate"] = self.published_date
        return body


@dataclass
class ReverseSearchResult:
    success: bool
    matches: list[SearchMatch] = field(default_factory=list)
    search_duration: int = 0
    message: Optional[str] = None

    @property
    def total_matches(self) -> int:
        return len(self.matches)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.success,
            "matches": [m.to_dict() for m in self.matches],
            "totalMatches": self.total_matches,
            "searchDuration": self.search_duration,
        }
        if self.message:
            body["message"] = self.message
        return body


# ─── Provider clients ─────────────────────────────────────────────────────────


async def search_tineye(
    client: httpx.AsyncClient, config: SearchConfig, image_url: str
) -> list[SearchMatch]:
    response = await client.get(
        TINEYE_SEARCH_URL,
        params={"url": image_url},
        headers={
            "User-Agent": CLIENT_USER_AGENT,
            "x-api-key": config.tineye_private_key or "",
        },
        timeout=config.timeout_s,
    )
    response.raise_for_status()

    matches = []
    for result in response.json().get("results") or []:
        backlinks = result.get("backlinks") or [{}]
        first = backlinks[0] or {}
        matches.append(
            SearchMatch(
                source="TinEye",
                url=first.get("url") or "",
                score=float(result.get("score") or 0),
                image_url=result.get("image_url"),
                title=first.get("image_name"),
                published_date=first.get("crawl_date"),
            )
        )
    return matches


async def search_bing(
    client: httpx.AsyncClient, config: SearchConfig, image_url: str
) -> list[SearchMatch]:
    response = await client.post(
        config.bing_endpoint,
        json={"imageInfo": {"url": image_url}},
        headers={"Ocp-Apim-Subscription-Key": config.bing_key or ""},
        timeout=config.timeout_s,
    )
    response.raise_for_status()

    tags = response.json().get("tags") or [{}]
    actions = (tags[0] or {}).get("actions") or []
    visual = next((a for a in actions if a.get("actionType") == "VisualSearch"), None)
    if visual is None:
        return []

    return [
        SearchMatch(
            source="Bing",
            url=item.get("webSearchUrl") or item.get("contentUrl") or "",
            score=0.8 if item.get("imageInsightsToken") else 0.6,
            image_url=item.get("thumbnailUrl"),
            title=item.get("name"),
            published_date=item.get("datePublished"),
        )
        for item in (visual.get("data") or {}).get("value") or []
    ]


# ─── Aggregation ──────────────────────────────────────────────────────────────


def aggregate_matches(batches: Iterable[list[SearchMatch]]) -> list[SearchMatch]:
    """Merge provider results: highest score first, first occurrence of a URL wins."""
    merged = [match for batch in batches for match in batch]
    merged.sort(key=lambda m: m.score, reverse=True)

    seen: set[str] = set()
    unique = []
    for match in merged:
        if match.url in seen:
            continue
        seen.add(match.url)
        unique.append(match)
    return unique


async def run_reverse_search(
    client: httpx.AsyncClient, config: SearchConfig, image_url: str
) -> ReverseSearchResult:
    """Query every configured provider concurrently and merge the matches."""
    started = time.monotonic()

    def elapsed_ms() -> int:
        return int((time.monotonic() - started) * 1000)

    if not (config.tineye_api_key or config.bing_enabled):
        logger.info("reverse_search_unconfigured")
        return ReverseSearchResult(
            success=False, search_duration=elapsed_ms(), message=NO_KEYS_MESSAGE
        )

    names = []
    calls = []
    if config.tineye_enabled:
        names.append("tineye")
        calls.append(search_tineye(client, config, image_url))
    if config.bing_enabled:
        names.append("bing")
        calls.append(search_bing(client, config, image_url))

    outcomes = await asyncio.gather(*calls, return_exceptions=True)

    batches = []
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning(
                "reverse_search_provider_failed",
                provider=name,
                error_type=type(outcome).__name__,
                error=str(outcome),
            )
            continue
        batches.append(outcome)

    matches = aggregate_matches(batches)
    result = ReverseSearchResult(
        success=True,
        matches=matches,
        search_duration=elapsed_ms(),
        message=None if matches else NO_MATCHES_MESSAGE,
    )
    logger.info(
        "reverse_search_completed",
        providers=names,
        total_matches=result.total_matches,
        duration_ms=result.search_duration,
    )
    return result


# ─── Catalogue ────────────────────────────────────────────────────────────────


async def build_search_catalogue(
    image_data: str,
    store: BlobStore,
    *,
    providers: Optional[list[str]] = None,
    public_base_url: Optional[str] = None,
) -> dict[str, Any]:
    """Publish an inline image once and describe how to search it everywhere.

    Raises:
        InvalidImageError: image_data is not a ``data:image/`` URL or does not decode.
    """
    if not image_data:
        raise InvalidImageError("Base64 image data is required")
    if not image_data.startswith("data:image/"):
        raise InvalidImageError("Image data must be a valid base64 data URL")

    decoded = decode_data_url(image_data)

    public_url: Optional[str] = None
    upload_error: Optional[str] = None
    try:
        stored = await store_image(
            store, decoded.data, content_type=decoded.content_type, base_url=public_base_url
        )
        public_url = stored.blob.url
    except (
        PayloadTooLargeError,
        StorageNotConfigured,
        StorageError,
        UpstreamUnavailableError,
    ) as exc:
        upload_error = exc.message or exc.error
        logger.warning("search_catalogue_upload_failed", reason=upload_error)

    wanted = set(providers) if providers is not None else None
    results = []
    for provider in PROVIDERS:
        if wanted is not None and provider.key not in wanted:
            continue
        results.append(
            {
                "provider": provider.name,
                "key": provider.key,
                "query_url": provider.landing_url,
                "search_url": build_search_url(provider, public_url) if public_url else None,
                "search_instructions": {
                    "manual_steps": list(provider.manual_steps),
                    "automated_available": False,
                },
            }
        )

    if public_url:
        message = (
            f"Image processed successfully. {len(results)} search providers configured. "
            "Open a search URL to run the search."
        )
    else:
        message = (
            f"Image processed successfully. {len(results)} search providers configured. "
            "Manual upload required for external search engines."
        )

    body: dict[str, Any] = {
        "success": True,
        "image_processed": True,
        "public_url": public_url,
        "results": results,
        "manual_search_required": public_url is None,
        "message": message,
    }
    if upload_error:
        body["upload_error"] = upload_error
    return body
