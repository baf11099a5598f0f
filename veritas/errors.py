"""Error taxonomy and JSON error responses for Veritas.

Every failure a handler can report deliberately is a VeritasError subclass
carrying its HTTP status. The app-level exception handler in main.py turns
them into responses via build_error_response(), so route handlers raise and
never hand-build error bodies.

Status mapping:
  400  InvalidImageError         — missing / undecodable image input
  404  UnknownProviderError      — search provider key not in the registry
  404  BlobNotFoundError         — served upload does not exist
  413  PayloadTooLargeError      — image larger than MAX_IMAGE_BYTES
  415  UnsupportedMediaError     — MIME type not in ALLOWED_IMAGE_TYPES
  500  StorageNotConfigured      — no blob token for the Vercel backend
  500  GoogleProxyError          — Google answered but no search URL found
  502  StorageError              — blob store rejected or failed the upload
  502  UpstreamUnavailableError  — outbound connect / timeout failure
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse


class VeritasError(Exception):
    """Base class for errors rendered as JSON responses."""

    status_code: int = 500
    code: str = "internal_error"
    error: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details
        super().__init__(message or self.error)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "error": self.error,
            "code": self.code,
        }
        if self.message:
            body["message"] = self.message
        if self.details:
            body["details"] = self.details
        return body


class InvalidImageError(VeritasError):
    status_code = 400
    code = "invalid_image"
    error = "Invalid image data"


class UnknownProviderError(VeritasError):
    status_code = 404
    code = "unknown_provider"
    error = "Unknown search provider"


class BlobNotFoundError(VeritasError):
    status_code = 404
    code = "not_found"
    error = "Image not found"


class PayloadTooLargeError(VeritasError):
    status_code = 413
    code = "payload_too_large"
    error = "Image file too large. Maximum size is 10MB."


class UnsupportedMediaError(VeritasError):
    status_code = 415
    code = "unsupported_media_type"
    error = "Invalid file type. Only images are allowed."


class StorageNotConfigured(VeritasError):
    status_code = 500
    code = "storage_not_configured"
    error = "Storage not configured"

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["solution"] = "Set BLOB_READ_WRITE_TOKEN in the server environment"
        return body


class GoogleProxyError(VeritasError):
    status_code = 500
    code = "google_proxy_failed"
    error = "Failed to get Google search URL"


class StorageError(VeritasError):
    status_code = 502
    code = "storage_error"
    error = "Failed to upload image"


class UpstreamUnavailableError(VeritasError):
    status_code = 502
    code = "upstream_unavailable"
    error = "Upstream service unavailable"


def build_error_response(exc: VeritasError) -> JSONResponse:
    """Render a VeritasError as a JSONResponse with its status code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
