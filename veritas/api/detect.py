"""POST /api/detect — image authenticity analysis.

Accepts either a multipart upload (field ``image``) or a JSON body
``{"imageUrl": "https://..."}``; the image is downloaded in the second case.
"""

from fastapi import APIRouter, Request
from starlette.datastructures import UploadFile

from veritas.analysis.detect import analyse_image, download_image
from veritas.api.deps import get_blob_store, get_config, get_http_client, public_base_url
from veritas.constants import MAX_IMAGE_BYTES
from veritas.errors import InvalidImageError, PayloadTooLargeError
from veritas.images.dataurl import is_public_url, validate_content_type
from veritas.limiter import UPLOAD_RATE_LIMIT, limiter
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["analysis"])

MISSING_INPUT_MESSAGE = "Either image file or imageUrl is required"


async def _read_upload(request: Request) -> bytes:
    form = await request.form()
    upload = form.get("image")
    if not isinstance(upload, UploadFile):
        raise InvalidImageError(MISSING_INPUT_MESSAGE)

    validate_content_type(upload.content_type)
    data = await upload.read(MAX_IMAGE_BYTES + 1)
    if len(data) > MAX_IMAGE_BYTES:
        raise PayloadTooLargeError()
    if not data:
        raise InvalidImageError("Uploaded file is empty")
    return data


async def _read_image_url(request: Request) -> bytes:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise InvalidImageError("Request body must be JSON or multipart form data") from exc

    image_url = payload.get("imageUrl") if isinstance(payload, dict) else None
    if not image_url:
        raise InvalidImageError(MISSING_INPUT_MESSAGE)
    if not is_public_url(image_url):
        raise InvalidImageError("imageUrl must be a public http(s) URL")

    return await download_image(get_http_client(request), image_url)


@router.post("/api/detect")
@limiter.limit(UPLOAD_RATE_LIMIT)
async def detect(request: Request) -> dict:
    """Analyse an image and return the confidence score with forensic detail.

    Returns:
        JSON: {confidence, modelScore, modelConfigured, reverseMatches,
               forensic: {elaImageUrl, elaScore, clones, metadata},
               provenance: {synthIdDetected, c2paManifest, ...}}

    Raises:
        HTTP 400: no input, bad JSON, or the image URL could not be fetched.
        HTTP 413: image larger than MAX_IMAGE_BYTES.
        HTTP 415: multipart upload with a disallowed MIME type.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        data = await _read_upload(request)
    else:
        data = await _read_image_url(request)

    result = await analyse_image(
        data,
        client=get_http_client(request),
        config=get_config(request).analysis,
        store=get_blob_store(request),
        public_base_url=public_base_url(request),
    )
    return result.to_dict()
