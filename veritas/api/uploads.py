"""Upload endpoints.

Routes:
    POST /api/upload-image      — JSON data URL → normalised JPEG in blob storage
    POST /api/upload-for-search — multipart ``image`` stored as-is, short-lived
    GET  /uploads/{filename}    — serve a local-store upload
    GET  /api/images/{filename} — same file, API-style path

Served files carry X-Robots-Tag so the temporary copies never get indexed
by the search engines they were uploaded for.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from veritas.api.deps import get_blob_store, get_config, public_base_url
from veritas.constants import MAX_IMAGE_BYTES, X_ROBOTS_TAG
from veritas.errors import BlobNotFoundError, InvalidImageError, PayloadTooLargeError
from veritas.images.dataurl import decode_data_url, validate_content_type
from veritas.limiter import UPLOAD_RATE_LIMIT, limiter
from veritas.storage.local import LocalBlobStore
from veritas.storage.uploader import store_image
from veritas.utils.ids import generate_blob_filename
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["uploads"])


# ─── Request Models ───────────────────────────────────────────────────────────


class UploadImageRequest(BaseModel):
    imageData: Optional[str] = None
    filename: Optional[str] = None
    """Client-side name, logged only. The stored name is always generated."""


# ─── Endpoints ────────────────────────────────────────────────────────────────


@router.post("/api/upload-image")
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_image(body: UploadImageRequest, request: Request) -> dict:
    """Decode a data URL, normalise it and publish it to blob storage.

    Returns:
        JSON: {success, publicUrl, imageUrl, downloadUrl, filename, message,
               debug: {originalSize, processedSize, compressionRatio}}

    Raises:
        HTTP 400: imageData missing or not decodable.
        HTTP 500: storage not configured (body includes ``solution``).
        HTTP 502: the blob store rejected the upload.
    """
    if not body.imageData:
        raise InvalidImageError("No image data provided")

    decoded = decode_data_url(body.imageData)
    stored = await store_image(
        get_blob_store(request),
        decoded.data,
        content_type=decoded.content_type,
        base_url=public_base_url(request),
    )
    logger.info(
        "image_uploaded",
        client_filename=body.filename,
        pathname=stored.blob.pathname,
    )

    return {
        "success": True,
        "publicUrl": stored.blob.url,
        "imageUrl": stored.blob.url,
        "downloadUrl": stored.blob.download_url,
        "filename": stored.blob.pathname,
        "message": "Image uploaded successfully and publicly accessible",
        "debug": {
            "originalSize": stored.image.original_size,
            "processedSize": stored.image.processed_size,
            "compressionRatio": stored.image.compression_ratio,
        },
    }


@router.post("/api/upload-for-search")
@limiter.limit(UPLOAD_RATE_LIMIT)
async def upload_for_search(
    request: Request,
    image: Optional[UploadFile] = File(None),
) -> dict:
    """Store a multipart upload unchanged so a search engine can fetch it.

    Returns:
        JSON: {success, publicUrl, filename, expires}

    Raises:
        HTTP 400: no ``image`` part.
        HTTP 413: file larger than MAX_IMAGE_BYTES.
        HTTP 415: MIME type not allowed.
    """
    if image is None:
        raise InvalidImageError("No file uploaded")

    content_type = validate_content_type(image.content_type)
    data = await image.read(MAX_IMAGE_BYTES + 1)
    if len(data) > MAX_IMAGE_BYTES:
        raise PayloadTooLargeError()
    if not data:
        raise InvalidImageError("Uploaded file is empty")

    subtype = content_type.rsplit("/", 1)[-1]
    extension = "jpg" if subtype in ("jpeg", "jpg") else subtype
    pathname = generate_blob_filename(extension)

    store = get_blob_store(request)
    blob = await store.put(pathname, data, content_type, base_url=public_base_url(request))

    ttl = get_config(request).storage.ttl_seconds
    expires = datetime.now(timezone.utc) + timedelta(seconds=ttl)
    logger.info("search_upload_stored", pathname=blob.pathname, size=blob.size)

    return {
        "success": True,
        "publicUrl": blob.url,
        "filename": blob.pathname,
        "expires": expires.isoformat(),
    }


def _serve_local(request: Request, filename: str) -> FileResponse:
    store = get_blob_store(request)
    if not isinstance(store, LocalBlobStore):
        raise BlobNotFoundError()

    path = store.open_existing(filename)
    if path is None:
        raise BlobNotFoundError()

    return FileResponse(
        path,
        headers={
            "X-Robots-Tag": X_ROBOTS_TAG,
            "Cache-Control": f"public, max-age={get_config(request).storage.cache_max_age}",
        },
    )


@router.get("/uploads/{filename}")
async def serve_upload(filename: str, request: Request) -> FileResponse:
    return _serve_local(request, filename)


@router.get("/api/images/{filename}")
async def serve_image(filename: str, request: Request) -> FileResponse:
    return _serve_local(request, filename)
