"""Reverse image search provider registry.

Each provider accepts a publicly reachable image URL appended, URL-encoded,
to a fixed query prefix. When no public URL can be produced, the provider's
landing page and manual upload steps are shown instead.

Registry order is the display order used by /api/providers and the
reverse-search catalogue.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from veritas.errors import UnknownProviderError

# Characters encodeURIComponent leaves alone. Everything else (including
# "/", ":", "?", "&", "=") is percent-encoded so the image URL survives as a
# single query parameter value.
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class SearchProvider:
    key: str
    name: str
    url_template: str
    landing_url: str
    manual_steps: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "name": self.name,
            "landingUrl": self.landing_url,
            "manualSteps": list(self.manual_steps),
        }


PROVIDERS: tuple[SearchProvider, ...] = (
    SearchProvider(
        key="google",
        name="Google Images",
        url_template="https://www.google.com/searchbyimage?image_url=",
        landing_url="https://images.google.com",
        manual_steps=(
            "Go to images.google.com",
            "Click the camera icon in the search bar",
            'Choose "Upload an image"',
            "Select your downloaded image file",
        ),
    ),
    SearchProvider(
        key="google_lens",
        name="Google Lens",
        url_template="https://lens.google.com/uploadbyurl?url=",
        landing_url="https://lens.google.com",
        manual_steps=(
            "Go to lens.google.com",
            "Click the upload button",
            "Select your downloaded image file",
            "Review object and text detection results",
        ),
    ),
    SearchProvider(
        key="tineye",
        name="TinEye",
        url_template="https://tineye.com/search?url=",
        landing_url="https://tineye.com",
        manual_steps=(
            "Go to tineye.com",
            'Click the "Upload" button',
            "Select your downloaded image file",
            "Review exact matches and original sources",
        ),
    ),
    SearchProvider(
        key="bing",
        name="Bing Visual",
        url_template=(
            "https://www.bing.com/images/search"
            "?view=detailv2&iss=1&FORM=IRSBIQ&cbir=sbi&imgurl="
        ),
        landing_url="https://www.bing.com/visualsearch",
        manual_steps=(
            "Go to bing.com/visualsearch",
            'Click "Browse" or drag image to upload area',
            "Select your downloaded image file",
            "Explore visual matches and product results",
        ),
    ),
    SearchProvider(
        key="yandex",
        name="Yandex",
        url_template="https://yandex.com/images/search?rpt=imageview&url=",
        landing_url="https://yandex.com/images",
        manual_steps=(
            "Go to yandex.com/images",
            "Click the camera icon",
            'Choose "Select file"',
            "Upload your downloaded image file",
        ),
    ),
)

_BY_KEY: dict[str, SearchProvider] = {p.key: p for p in PROVIDERS}

PROVIDER_KEYS: tuple[str, ...] = tuple(_BY_KEY)


def get_provider(key: str) -> SearchProvider:
    try:
        return _BY_KEY[key]
    except KeyError:
        raise UnknownProviderError(
            f"Unknown provider '{key}'. Supported: {', '.join(PROVIDER_KEYS)}"
        ) from None


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def build_search_url(provider: SearchProvider, image_url: str) -> str:
    """Return the provider's search URL for a public image URL."""
    return provider.url_template + encode_uri_component(image_url)
