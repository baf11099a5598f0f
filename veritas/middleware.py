"""Starlette middleware for Veritas.

  BodySizeLimitMiddleware — 10 MB request body hard cap (HTTP 413), enforced
                            before any route handler or multipart parsing runs.
  RequestIDMiddleware     — assigns a ULID to every request, binds it into the
                            logging context and echoes it as X-Request-ID.
"""

from __future__ import annotations

import re

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from veritas.constants import MAX_REQUEST_BODY_BYTES
from veritas.utils.ids import generate_request_id
from veritas.utils.logger import bind_request_id, get_logger, reset_request_id

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Incoming request IDs are echoed into logs and headers; accept only a safe shape.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# ─── Error response bodies ────────────────────────────────────────────────────

_PAYLOAD_TOO_LARGE_BODY: dict = {
    "success": False,
    "error": "Request entity too large",
    "message": "Image file size exceeds 10MB limit",
    "code": "payload_too_large",
}

_INVALID_CONTENT_LENGTH_BODY: dict = {
    "success": False,
    "error": "Invalid Content-Length header",
    "code": "bad_request",
}


# ─── Body size limit ──────────────────────────────────────────────────────────


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Enforce MAX_REQUEST_BODY_BYTES on every request body.

    Two-phase check:
      1. Content-Length present → reject on the declared size without reading.
      2. No Content-Length (chunked) → read with a rolling cap; the accumulated
         bytes are cached on the request so handlers can still read the body.
    """

    def __init__(self, app, max_body_bytes: int = MAX_REQUEST_BODY_BYTES) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        content_length_header = request.headers.get("content-length")

        if content_length_header is not None:
            try:
                declared_size = int(content_length_header)
            except ValueError:
                logger.warning(
                    "invalid_content_length",
                    value=content_length_header,
                    path=request.url.path,
                )
                return JSONResponse(status_code=400, content=_INVALID_CONTENT_LENGTH_BODY)

            if declared_size > self.max_body_bytes:
                logger.warning(
                    "request_body_too_large",
                    declared_size=declared_size,
                    limit=self.max_body_bytes,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)

            return await call_next(request)

        if request.method in ("GET", "HEAD", "OPTIONS"):
            return await call_next(request)

        body_chunks: list[bytes] = []
        total_size = 0

        async for chunk in request.stream():
            total_size += len(chunk)
            if total_size > self.max_body_bytes:
                logger.warning(
                    "request_body_too_large_chunked",
                    accumulated_size=total_size,
                    limit=self.max_body_bytes,
                    path=request.url.path,
                )
                return JSONResponse(status_code=413, content=_PAYLOAD_TOO_LARGE_BODY)
            body_chunks.append(chunk)

        # Starlette's Request.body() returns request._body when it is set, so the
        # handler sees the bytes already consumed from the stream.
        request._body = b"".join(body_chunks)  # type: ignore[attr-defined]

        return await call_next(request)


# ─── Request ID ───────────────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID visible in logs and in the response headers."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        incoming = request.headers.get(REQUEST_ID_HEADER)
        if incoming and _VALID_REQUEST_ID.match(incoming):
            request_id = incoming
        else:
            request_id = generate_request_id()

        request.state.request_id = request_id
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
