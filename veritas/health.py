"""Health endpoint for Veritas.

Implements:
  GET /health — 503 before the lifespan sets ``app.state.ready``, 200 after.

The body reports which blob store is active and whether it is usable, so a
deployment missing BLOB_READ_WRITE_TOKEN shows up as ``"degraded"`` rather
than failing on the first upload.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from veritas import __version__
from veritas.storage.protocol import BlobStore

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check endpoint.

    Response body (200):
        {
          "status": "ok" | "degraded",
          "timestamp": "2026-01-01T00:00:00+00:00",
          "version": "1.0.0",
          "storage": {"backend": "vercel" | "local" | "unconfigured", "healthy": true}
        }

    Response body (503):
        {"status": "starting", "message": "Veritas is starting up..."}
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Veritas is starting up...",
            },
        )

    store: BlobStore = request.app.state.blob_store
    storage_healthy = await store.health_check()

    return {
        "status": "ok" if storage_healthy else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "storage": {"backend": store.name, "healthy": storage_healthy},
    }
