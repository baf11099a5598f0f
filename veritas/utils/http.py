"""Shared outbound HTTP client factory."""

from __future__ import annotations

import httpx

from veritas.constants import (
    OUTBOUND_TIMEOUT_S,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
)


def create_http_client(timeout_s: float = OUTBOUND_TIMEOUT_S) -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient with connection pooling configured.

    Created once at lifespan startup and stored in app.state.http_client.
    Redirects are not followed: the Google proxy needs to read Location
    headers itself. Calls that want redirects followed ask for it per request.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=False,
    )
