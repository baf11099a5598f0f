"""Normalise-then-store helper shared by the upload and search routes."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from veritas.images.processing import ProcessedImage, normalise_image
from veritas.storage.protocol import BlobStore, StoredBlob
from veritas.utils.ids import generate_blob_filename
from veritas.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredImage:
    blob: StoredBlob
    image: ProcessedImage


async def store_image(
    store: BlobStore,
    data: bytes,
    *,
    content_type: str = "image/jpeg",
    base_url: Optional[str] = None,
) -> StoredImage:
    """Normalise image bytes off the event loop and put them in the store.

    Raises:
        StorageNotConfigured, StorageError, UpstreamUnavailableError: from the store.
    """
    image = await asyncio.to_thread(
        normalise_image, data, fallback_content_type=content_type
    )
    extension = "jpg" if image.processed else content_type.rsplit("/", 1)[-1]
    pathname = generate_blob_filename(extension)

    blob = await store.put(pathname, image.data, image.content_type, base_url=base_url)
    logger.info(
        "image_stored",
        store=store.name,
        pathname=blob.pathname,
        original_size=image.original_size,
        processed_size=image.processed_size,
        processed=image.processed,
    )
    return StoredImage(blob=blob, image=image)
