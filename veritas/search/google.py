"""Google searchbyimage proxy.

Browsers cannot POST an image to Google's upload endpoint and read the
redirect (CORS, opaque redirects), so the server does it:

    POST https://www.google.com/searchbyimage/upload   (multipart, no redirects)
      302 Location: https://www.google.com/search?...&vsrid=...   ← wanted

Google sometimes answers with an intermediate redirect that has no ``vsrid``
yet, or with a 200 HTML page that embeds the results link. One more hop is
followed by hand in that case; redirects are never followed automatically.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import parse_qs, urljoin, urlparse

import httpx

from veritas.constants import BROWSER_USER_AGENT
from veritas.errors import GoogleProxyError, UpstreamUnavailableError
from veritas.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

GOOGLE_BASE_URL = "https://www.google.com"
GOOGLE_UPLOAD_URL = f"{GOOGLE_BASE_URL}/searchbyimage/upload"

UPLOAD_FORM_FIELDS: dict[str, str] = {
    "hl": "en",
    "udm": "26",
    "lns_mode": "un",
    "source": "lns.web.ukn",
    "lns_surface": "26",
    "lns_vfs": "d",
}

BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

# Results links embedded in HTML, possibly with &amp; entities.
_VSRID_LINK = re.compile(r"""(?:https://www\.google\.com)?/search\?[^"'<>\s]*vsrid=[^"'<>\s]+""")


def has_vsrid(url: str) -> bool:
    return "vsrid" in parse_qs(urlparse(url).query)


def extract_vsrid_url(html: str) -> Optional[str]:
    """Find the first absolute ``/search?...vsrid=`` URL in an HTML page."""
    match = _VSRID_LINK.search(html)
    if not match:
        return None
    return urljoin(GOOGLE_BASE_URL, match.group(0).replace("&amp;", "&"))


def _location(response: httpx.Response) -> Optional[str]:
    if not response.is_redirect:
        return None
    location = response.headers.get("location")
    return urljoin(GOOGLE_BASE_URL, location) if location else None


async def _follow_once(client: httpx.AsyncClient, url: str) -> Optional[str]:
    """GET url without following redirects; return a vsrid URL if one shows up.

    Returns None when the hop fails, leaving the caller with the first Location.
    """
    try:
        response = await client.get(url, headers=BROWSER_HEADERS, follow_redirects=False)
    except httpx.HTTPError as exc:
        logger.info("google_redirect_hop_failed", error_type=type(exc).__name__, error=str(exc))
        return None
    location = _location(response)
    if location and has_vsrid(location):
        return location
    if response.status_code == 200:
        return extract_vsrid_url(response.text)
    return None


async def fetch_google_search_url(client: httpx.AsyncClient, image_bytes: bytes) -> str:
    """Upload image bytes to Google and return the visual search results URL.

    Raises:
        GoogleProxyError:         Google answered without a usable URL.
        UpstreamUnavailableError: Google could not be reached.
    """
    files = {"encoded_image": ("image.jpg", image_bytes, "image/jpeg")}

    try:
        with PerformanceLogger("google_searchbyimage_upload", logger):
            response = await client.post(
                GOOGLE_UPLOAD_URL,
                data=UPLOAD_FORM_FIELDS,
                files=files,
                headers=BROWSER_HEADERS,
                follow_redirects=False,
            )

            location = _location(response)
            if location:
                if has_vsrid(location):
                    return location
                followed = await _follow_once(client, location)
                return followed or location

            if response.status_code == 200:
                found = extract_vsrid_url(response.text)
                if found:
                    return found
    except httpx.TransportError as exc:
        logger.warning(
            "google_proxy_unavailable",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise UpstreamUnavailableError(
            "Could not reach Google", details={"reason": type(exc).__name__}
        ) from exc

    logger.error(
        "google_proxy_no_redirect",
        status_code=response.status_code,
        body=response.text[:200],
    )
    raise GoogleProxyError(
        f"Google did not return a valid redirect. Status: {response.status_code}"
    )
