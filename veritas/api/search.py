"""Reverse image search endpoints.

Routes:
    GET  /api/providers                    — registry with landing pages and steps
    POST /api/search/{provider}            — image → search URL (JSON, with fallback)
    GET  /api/search/{provider}?image_url= — 302 straight to the provider
    POST /api/google-vsrid-proxy           — Google searchbyimage results URL
    POST /api/reverse-search               — API search ({imageUrl}) or catalogue ({imageData})
    GET  /api/search-keywords              — text keywords for query-based search
"""

from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from veritas.api.deps import get_blob_store, get_config, get_http_client, public_base_url
from veritas.errors import InvalidImageError
from veritas.images.dataurl import decode_data_url, is_public_url
from veritas.limiter import OUTBOUND_SEARCH_RATE_LIMIT, UPLOAD_RATE_LIMIT, limiter
from veritas.search.google import fetch_google_search_url
from veritas.search.keywords import SEARCH_TIPS, extract_image_keywords, generate_search_query
from veritas.search.providers import PROVIDERS, build_search_url, get_provider
from veritas.search.redirect import resolve_search
from veritas.search.reverse import (
    ReverseSearchResult,
    build_search_catalogue,
    run_reverse_search,
)
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["search"])


# ─── Request Models ───────────────────────────────────────────────────────────


class SearchRequest(BaseModel):
    """Any one of the three fields; the first non-empty one is used."""

    image: Optional[str] = None
    imageData: Optional[str] = None
    imageUrl: Optional[str] = None

    def pick(self) -> Optional[str]:
        return self.image or self.imageData or self.imageUrl


class GoogleProxyRequest(BaseModel):
    imageData: Optional[str] = None


class ReverseSearchRequest(BaseModel):
    imageUrl: Optional[str] = None
    imageData: Optional[str] = None
    searchProviders: Optional[list[str]] = None


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/api/providers")
async def list_providers() -> dict:
    return {"providers": [p.to_dict() for p in PROVIDERS]}


@router.post("/api/search/{provider}")
@limiter.limit(UPLOAD_RATE_LIMIT)
async def search_with_provider(provider: str, body: SearchRequest, request: Request) -> dict:
    """Resolve an image into a provider search URL.

    Public URLs are used directly; inline images are uploaded first. When the
    upload cannot be done the response is still 200, with ``method: "manual"``,
    the provider's landing page and the manual steps.

    Raises:
        HTTP 400: no image, or an image that is neither a URL nor base64.
        HTTP 404: unknown provider.
    """
    redirect = await resolve_search(
        provider,
        body.pick(),
        get_blob_store(request),
        public_base_url(request),
    )
    return redirect.to_dict()


@router.get("/api/search/{provider}")
async def redirect_to_provider(
    provider: str,
    image_url: Optional[str] = Query(None),
) -> RedirectResponse:
    """Redirect the browser to the provider's results for a public image URL."""
    search_provider = get_provider(provider)
    if not is_public_url(image_url):
        raise InvalidImageError("image_url must be a public http(s) URL")
    return RedirectResponse(build_search_url(search_provider, image_url), status_code=302)


@router.post("/api/google-vsrid-proxy")
@limiter.limit(OUTBOUND_SEARCH_RATE_LIMIT)
async def google_vsrid_proxy(body: GoogleProxyRequest, request: Request) -> dict:
    """Upload the image to Google and return the results URL.

    Returns:
        JSON: {success: true, fullUrl}

    Raises:
        HTTP 400: imageData missing or invalid.
        HTTP 500: Google answered without a usable redirect.
        HTTP 502: Google unreachable.
    """
    if not body.imageData:
        raise InvalidImageError("No image data provided")

    decoded = decode_data_url(body.imageData)
    full_url = await fetch_google_search_url(get_http_client(request), decoded.data)
    logger.info("google_search_url_resolved")
    return {"success": True, "fullUrl": full_url}


@router.post("/api/reverse-search")
@limiter.limit(OUTBOUND_SEARCH_RATE_LIMIT)
async def reverse_search(body: ReverseSearchRequest, request: Request):
    """Automated search for a public URL, or a search catalogue for inline data."""
    if body.imageData is not None:
        return await build_search_catalogue(
            body.imageData,
            get_blob_store(request),
            providers=body.searchProviders,
            public_base_url=public_base_url(request),
        )

    if not body.imageUrl:
        return _reverse_search_rejected("Image URL is required")
    if not is_public_url(body.imageUrl):
        return _reverse_search_rejected("Invalid image URL provided")

    result = await run_reverse_search(
        get_http_client(request), get_config(request).search, body.imageUrl
    )
    return result.to_dict()


def _reverse_search_rejected(message: str) -> JSONResponse:
    result = ReverseSearchResult(success=False, message=message)
    return JSONResponse(status_code=400, content=result.to_dict())


@router.get("/api/search-keywords")
async def search_keywords(
    filename: str = Query(..., min_length=1),
    width: Optional[int] = Query(None, ge=1),
    height: Optional[int] = Query(None, ge=1),
) -> dict:
    keywords = extract_image_keywords(filename, width, height)
    return {
        "keywords": keywords,
        "queries": {
            "broad": generate_search_query(keywords, "broad"),
            "specific": generate_search_query(keywords, "specific"),
        },
        "tips": list(SEARCH_TIPS),
    }
