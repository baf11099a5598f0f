"""VercelBlobStore — public uploads via the Vercel Blob REST API.

Upload contract (the same one the official SDKs use):

    PUT {base_url}/{pathname}
    authorization:            Bearer <BLOB_READ_WRITE_TOKEN>
    x-api-version:            7
    x-content-type:           image/jpeg
    x-cache-control-max-age:  3600
    x-add-random-suffix:      0

    200 {"url": "...", "downloadUrl": "...", "pathname": "...", ...}

Pathnames are already unique (img_<ms>_<hex>.jpg), so the random suffix is
disabled to keep the returned URL predictable.

The token is never logged.
"""

from __future__ import annotations

from typing import Optional

import httpx

from veritas.constants import BLOB_CACHE_MAX_AGE
from veritas.errors import StorageError, UpstreamUnavailableError
from veritas.storage.protocol import StoredBlob
from veritas.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

BLOB_API_VERSION = "7"


class VercelBlobStore:
    """Async Vercel Blob client sharing the app's httpx.AsyncClient."""

    name = "vercel"

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str,
        base_url: str = "https://blob.vercel-storage.com",
        cache_max_age: int = BLOB_CACHE_MAX_AGE,
    ) -> None:
        self._client = client
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._cache_max_age = cache_max_age

    async def put(
        self,
        pathname: str,
        data: bytes,
        content_type: str,
        *,
        base_url: Optional[str] = None,
    ) -> StoredBlob:
        headers = {
            "authorization": f"Bearer {self._token}",
            "x-api-version": BLOB_API_VERSION,
            "x-content-type": content_type,
            "x-cache-control-max-age": str(self._cache_max_age),
            "x-add-random-suffix": "0",
        }
        url = f"{self._base_url}/{pathname}"

        try:
            with PerformanceLogger("vercel_blob_put", logger):
                response = await self._client.put(url, content=data, headers=headers)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
            logger.warning(
                "blob_upload_unavailable",
                pathname=pathname,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise UpstreamUnavailableError(
                "Blob storage unreachable", details={"reason": type(exc).__name__}
            ) from exc

        if response.status_code >= 400:
            logger.error(
                "blob_upload_rejected",
                pathname=pathname,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise StorageError(
                f"Blob storage rejected the upload (HTTP {response.status_code})"
            )

        try:
            payload = response.json()
            public_url = payload["url"]
        except (ValueError, KeyError, TypeError) as exc:
            raise StorageError("Blob storage returned an unexpected response") from exc

        logger.info("blob_uploaded", pathname=pathname, size=len(data), url=public_url)
        return StoredBlob(
            url=public_url,
            download_url=payload.get("downloadUrl") or public_url,
            pathname=payload.get("pathname") or pathname,
            size=len(data),
            content_type=content_type,
        )

    async def health_check(self) -> bool:
        return bool(self._token)

    async def close(self) -> None:
        # The shared http client is owned and closed by the lifespan.
        return None
