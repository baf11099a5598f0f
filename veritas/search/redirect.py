"""Upload → public URL → provider redirect pipeline.

Search engines only accept images by URL, so an image the caller holds as
a data URL has to be made public first:

    public http(s) URL  → search URL built directly           (method="direct")
    data URL / base64   → decode, normalise, upload, build    (method="uploaded")
    upload step fails   → provider landing page + steps       (method="manual")

The manual fallback is a normal 200 response, not an error: the caller
still gets somewhere useful to send the user.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from veritas.errors import (
    InvalidImageError,
    PayloadTooLargeError,
    StorageError,
    StorageNotConfigured,
    UpstreamUnavailableError,
)
from veritas.images.dataurl import decode_data_url, is_data_url, is_public_url
from veritas.search.providers import SearchProvider, build_search_url, get_provider
from veritas.storage.protocol import BlobStore
from veritas.storage.uploader import store_image
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

_BARE_BASE64 = re.compile(r"^[A-Za-z0-9+/=\s]+$")

# Failures of the upload step that degrade to manual search.
_FALLBACK_ERRORS = (
    InvalidImageError,
    PayloadTooLargeError,
    StorageNotConfigured,
    StorageError,
    UpstreamUnavailableError,
)


@dataclass(frozen=True)
class SearchRedirect:
    provider: SearchProvider
    method: str
    search_url: Optional[str] = None
    public_url: Optional[str] = None
    error: Optional[str] = None
    manual_steps: tuple[str, ...] = field(default=())

    @property
    def landing_url(self) -> str:
        return self.provider.landing_url

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.method != "manual",
            "provider": self.provider.key,
            "providerName": self.provider.name,
            "method": self.method,
            "searchUrl": self.search_url,
            "publicUrl": self.public_url,
        }
        if self.method == "manual":
            body["landingUrl"] = self.landing_url
            body["manualSteps"] = list(self.manual_steps)
            body["error"] = self.error
        return body


def _manual(provider: SearchProvider, reason: str) -> SearchRedirect:
    return SearchRedirect(
        provider=provider,
        method="manual",
        error=reason,
        manual_steps=provider.manual_steps,
    )


async def resolve_search(
    provider_key: str,
    image: Optional[str],
    store: BlobStore,
    public_base_url: Optional[str] = None,
) -> SearchRedirect:
    """Turn an image reference into a search URL for one provider.

    Args:
        provider_key:    Registry key, e.g. ``"tineye"``.
        image:           Public http(s) URL, data URL, or bare base64.
        store:           Blob store used to publish inline images.
        public_base_url: Externally visible base URL of this service, passed
                         to stores that serve files themselves.

    Raises:
        UnknownProviderError: provider_key is not registered.
        InvalidImageError:    image is empty or neither a URL nor base64.
    """
    provider = get_provider(provider_key)

    if not image or not image.strip():
        raise InvalidImageError("No image provided")
    image = image.strip()

    if is_public_url(image):
        logger.info("search_redirect_direct", provider=provider.key)
        return SearchRedirect(
            provider=provider,
            method="direct",
            search_url=build_search_url(provider, image),
            public_url=image,
        )

    if not (is_data_url(image) or _BARE_BASE64.match(image)):
        raise InvalidImageError("Image must be a public http(s) URL or base64 image data")

    try:
        decoded = decode_data_url(image)
        stored = await store_image(
            store, decoded.data, content_type=decoded.content_type, base_url=public_base_url
        )
    except _FALLBACK_ERRORS as exc:
        reason = exc.message or exc.error
        logger.warning(
            "search_redirect_fallback",
            provider=provider.key,
            error_type=type(exc).__name__,
            reason=reason,
        )
        return _manual(provider, reason)

    public_url = stored.blob.url
    logger.info("search_redirect_uploaded", provider=provider.key, pathname=stored.blob.pathname)
    return SearchRedirect(
        provider=provider,
        method="uploaded",
        search_url=build_search_url(provider, public_url),
        public_url=public_url,
    )
