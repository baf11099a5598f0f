"""Veritas application: create_app(), its lifespan and the root endpoint.

The lifespan loads config, then builds the shared httpx client and the blob
store on app.state. With the local backend it also starts a pruner for
expired uploads. Only then is app.state.ready set; /api routes answer 503
until it is. Shutdown clears ready and closes everything in reverse.

``app`` at module level is the instance uvicorn serves (see run.py).
"""

from __future__ import annotations

import asyncio
import contextlib
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from veritas import __version__
from veritas.api.detect import router as detect_router
from veritas.api.search import router as search_router
from veritas.api.uploads import router as uploads_router
from veritas.config import Config, load_config
from veritas.constants import LOCAL_PRUNE_INTERVAL_S
from veritas.errors import VeritasError, build_error_response
from veritas.health import router as health_router
from veritas.limiter import limiter
from veritas.middleware import BodySizeLimitMiddleware, RequestIDMiddleware
from veritas.storage import BlobStore, create_blob_store
from veritas.storage.local import LocalBlobStore
from veritas.utils.http import create_http_client
from veritas.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


# ─── Routers ──────────────────────────────────────────────────────────────────

root_router = APIRouter(tags=["root"])


# ─── Dependencies ─────────────────────────────────────────────────────────────


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True.

    Every /api route consumes this. /health handles the 503 case itself.
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={
                "status": "starting",
                "message": "Veritas is starting up...",
            },
        )


# ─── Root Endpoint ────────────────────────────────────────────────────────────


@root_router.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint — service identity / discovery."""
    return {
        "service": "Veritas",
        "description": "Image authenticity analysis and reverse image search",
        "version": __version__,
        "health": "/health",
        "endpoints": [
            "POST /api/detect",
            "POST /api/reverse-search",
            "POST /api/upload-image",
            "POST /api/upload-for-search",
            "POST /api/google-vsrid-proxy",
            "GET|POST /api/search/{provider}",
            "GET /api/search-keywords",
            "GET /api/providers",
            "GET /api/images/{filename}",
            "GET /uploads/{filename}",
        ],
    }


# ─── Background tasks ─────────────────────────────────────────────────────────


async def _prune_local_uploads(store: LocalBlobStore, interval_s: float) -> None:
    """Delete expired local uploads every interval_s until cancelled."""
    while True:
        await asyncio.sleep(interval_s)
        try:
            await asyncio.to_thread(store.prune_expired)
        except OSError as exc:
            logger.warning("local_upload_prune_failed", error=str(exc))


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Wire shared resources onto app.state; tear them down in reverse."""
    # SystemExit from an invalid config file propagates before ready is set.
    config: Config = load_config()
    http_client: httpx.AsyncClient = create_http_client(config.search.timeout_s)
    blob_store: BlobStore = create_blob_store(config, http_client)

    app.state.config = config
    app.state.http_client = http_client
    app.state.blob_store = blob_store

    prune_task: Optional[asyncio.Task[None]] = None
    if isinstance(blob_store, LocalBlobStore):
        prune_task = asyncio.create_task(
            _prune_local_uploads(blob_store, LOCAL_PRUNE_INTERVAL_S)
        )

    app.state.ready = True
    logger.info(
        "veritas_ready",
        version=__version__,
        storage_backend=blob_store.name,
        model_configured=config.analysis.model_configured,
        tineye_enabled=config.search.tineye_enabled,
        bing_enabled=config.search.bing_enabled,
    )

    try:
        yield
    finally:
        app.state.ready = False

        if prune_task is not None:
            prune_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await prune_task

        await blob_store.close()
        await http_client.aclose()
        logger.info("veritas_stopped")


# ─── Exception handlers ───────────────────────────────────────────────────────


async def _veritas_error(request: Request, exc: VeritasError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
    )
    return build_error_response(exc)


async def _http_error(request: Request, exc: HTTPException) -> JSONResponse:
    logger.info("http_error", path=request.url.path, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path, error_type=type(exc).__name__)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Build a fresh Veritas app. Tests call this for an isolated instance."""
    application = FastAPI(
        title="Veritas",
        description="Image authenticity analysis and reverse image search API",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )
    application.state.ready = False
    application.state.limiter = limiter

    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    application.add_exception_handler(VeritasError, _veritas_error)
    application.add_exception_handler(HTTPException, _http_error)
    application.add_exception_handler(Exception, _unhandled_error)

    # Last added runs first: RequestID, SlowAPI, BodySizeLimit, then CORS.
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    application.add_middleware(BodySizeLimitMiddleware)
    application.add_middleware(SlowAPIMiddleware)
    application.add_middleware(RequestIDMiddleware)

    application.include_router(root_router)
    application.include_router(health_router)
    gated = [Depends(require_ready)]
    for router in (uploads_router, search_router, detect_router):
        application.include_router(router, dependencies=gated)

    return application


# ─── Module-Level App (for uvicorn) ───────────────────────────────────────────

app = create_app()
