"""Accessors for the shared resources the lifespan puts on ``app.state``."""

from __future__ import annotations

import httpx
from fastapi import Request

from veritas.config import Config
from veritas.storage.protocol import BlobStore


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store


def public_base_url(request: Request) -> str:
    """Externally visible base URL: configured value, else the request's own."""
    configured = get_config(request).server.public_base_url
    if configured:
        return configured
    return str(request.base_url).rstrip("/")
