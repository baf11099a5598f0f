"""Veritas blob storage package.

Re-exports the public API:

    from veritas.storage import BlobStore, StoredBlob, create_blob_store

Layout:
    protocol.py — BlobStore Protocol + StoredBlob + UnconfiguredBlobStore
    vercel.py   — VercelBlobStore (Vercel Blob REST API over httpx)
    local.py    — LocalBlobStore (disk, TTL pruning, served at /uploads)
    factory.py  — create_blob_store() — backend selection from config
    uploader.py — store_image() — normalise + put, shared by the routes
"""

from veritas.storage.factory import create_blob_store
from veritas.storage.protocol import BlobStore, StoredBlob, UnconfiguredBlobStore
from veritas.storage.uploader import StoredImage, store_image

__all__ = [
    "BlobStore",
    "StoredBlob",
    "StoredImage",
    "UnconfiguredBlobStore",
    "create_blob_store",
    "store_image",
]
