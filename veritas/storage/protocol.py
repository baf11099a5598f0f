"""BlobStore Protocol + StoredBlob result + UnconfiguredBlobStore.

A blob store turns image bytes into a URL that external search engines can
fetch. Implementations:
  - VercelBlobStore       (storage/vercel.py)  — managed public object storage
  - LocalBlobStore        (storage/local.py)   — files served by this app
  - UnconfiguredBlobStore (below)              — every put() raises
Selection happens in create_blob_store() (storage/factory.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from veritas.errors import StorageNotConfigured
from veritas.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredBlob:
    url: str
    """Public URL, fetchable without credentials."""
    download_url: str
    pathname: str
    size: int
    content_type: str


@runtime_checkable
class BlobStore(Protocol):
    """Pluggable public blob storage interface."""

    name: str

    async def put(
        self,
        pathname: str,
        data: bytes,
        content_type: str,
        *,
        base_url: Optional[str] = None,
    ) -> StoredBlob:
        """Store bytes under pathname and return the public URL.

        base_url is the externally visible base URL of this service. Only
        stores that serve files themselves use it.

        Raises:
            StorageNotConfigured: the store has no credentials.
            StorageError:         the upload failed.
        """
        ...

    async def health_check(self) -> bool:
        """Returns True if the store is usable. Must not raise."""
        ...

    async def close(self) -> None:
        """Release resources. Called during graceful shutdown."""
        ...


class UnconfiguredBlobStore:
    """Store used when the Vercel backend is selected without a token."""

    name = "unconfigured"

    def __init__(self, reason: str = "BLOB_READ_WRITE_TOKEN is not set") -> None:
        self.reason = reason

    async def put(
        self,
        pathname: str,
        data: bytes,
        content_type: str,
        *,
        base_url: Optional[str] = None,
    ) -> StoredBlob:
        logger.error("blob_store_unconfigured", pathname=pathname, reason=self.reason)
        raise StorageNotConfigured(
            "BLOB_READ_WRITE_TOKEN required for public image hosting. "
            "Uploaded files cannot be made publicly accessible without it."
        )

    async def health_check(self) -> bool:
        return False

    async def close(self) -> None:
        return None


assert isinstance(UnconfiguredBlobStore(), BlobStore), (
    "UnconfiguredBlobStore does not satisfy BlobStore protocol"
)
