"""Blob store factory — backend selection and initialization.

Backend selection (storage.backend in config):
  "vercel" → VercelBlobStore; UnconfiguredBlobStore when the token is missing
  "local"  → LocalBlobStore under storage.local_dir
  "auto"   → VercelBlobStore if BLOB_READ_WRITE_TOKEN is set, else LocalBlobStore
"""

from __future__ import annotations

import httpx

from veritas.config import Config
from veritas.storage.protocol import BlobStore, UnconfiguredBlobStore
from veritas.utils.logger import get_logger

logger = get_logger(__name__)


def create_blob_store(config: Config, http_client: httpx.AsyncClient) -> BlobStore:
    """Create the blob store selected by config.

    Returns:
        A ready-to-use BlobStore. Never raises for a missing token: the
        UnconfiguredBlobStore reports that at upload time instead, so the rest
        of the API (search URLs for public images, analysis) keeps working.
    """
    storage = config.storage
    backend = storage.backend

    if backend == "auto":
        backend = "vercel" if storage.blob_token else "local"

    if backend == "vercel":
        if not storage.blob_token:
            logger.warning(
                "blob_store_selected",
                backend="unconfigured",
                reason="storage.backend is 'vercel' but BLOB_READ_WRITE_TOKEN is not set",
            )
            return UnconfiguredBlobStore()
        return _create_vercel_store(config, http_client)

    return _create_local_store(config)


def _create_vercel_store(config: Config, http_client: httpx.AsyncClient) -> BlobStore:
    from veritas.storage.vercel import VercelBlobStore

    store = VercelBlobStore(
        client=http_client,
        token=config.storage.blob_token or "",
        base_url=config.storage.vercel_base_url,
        cache_max_age=config.storage.cache_max_age,
    )
    logger.info("blob_store_selected", backend="vercel")
    return store


def _create_local_store(config: Config) -> BlobStore:
    from veritas.storage.local import LocalBlobStore

    store = LocalBlobStore(
        directory=config.storage.local_dir,
        public_base_url=config.server.public_base_url,
        ttl_seconds=config.storage.ttl_seconds,
    )
    store.initialize()
    logger.info(
        "blob_store_selected",
        backend="local",
        directory=config.storage.local_dir,
        ttl_seconds=config.storage.ttl_seconds,
    )
    return store
