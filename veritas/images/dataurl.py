"""Image input decoding and classification.

Clients hand images to the API in three shapes:
  - a data URL            ``data:image/png;base64,iVBORw0...``
  - bare base64           ``iVBORw0...`` (treated as JPEG)
  - a public http(s) URL  ``https://example.com/photo.jpg``

decode_data_url() turns the first two into bytes; is_public_url() recognises
the third so the search pipeline can skip the upload step.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

from veritas.constants import ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES
from veritas.errors import InvalidImageError, PayloadTooLargeError, UnsupportedMediaError

_DATA_URL_PREFIX = re.compile(r"^data:image/([a-z0-9.+-]+);base64,", re.IGNORECASE)

_DEFAULT_SUBTYPE = "jpeg"


@dataclass(frozen=True)
class DecodedImage:
    data: bytes
    subtype: str

    @property
    def content_type(self) -> str:
        return f"image/{self.subtype}"


def is_data_url(value: Optional[str]) -> bool:
    return bool(value) and value.startswith("data:")  # type: ignore[union-attr]


def is_public_url(value: Optional[str]) -> bool:
    """True for absolute http(s) URLs with a host — fetchable by a search engine."""
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def decode_data_url(value: Optional[str]) -> DecodedImage:
    """Decode a base64 image, with or without a ``data:image/...`` prefix.

    Raises:
        InvalidImageError:    empty input, non-image data URL, or bad base64.
        PayloadTooLargeError: decoded image exceeds MAX_IMAGE_BYTES.
    """
    if not value or not value.strip():
        raise InvalidImageError("No image data provided")

    value = value.strip()
    match = _DATA_URL_PREFIX.match(value)
    if match:
        subtype = match.group(1).lower()
        payload = value[match.end():]
    elif value.startswith("data:"):
        raise InvalidImageError("Image data must be a base64 data:image/* URL")
    else:
        subtype = _DEFAULT_SUBTYPE
        payload = value

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image data is not valid base64") from exc

    if not data:
        raise InvalidImageError("No image data provided")
    if len(data) > MAX_IMAGE_BYTES:
        raise PayloadTooLargeError()

    if subtype == "jpg":
        subtype = "jpeg"
    return DecodedImage(data=data, subtype=subtype)


def validate_content_type(content_type: Optional[str]) -> str:
    """Return the normalised MIME type, or raise UnsupportedMediaError."""
    normalised = (content_type or "").split(";")[0].strip().lower()
    if normalised not in ALLOWED_IMAGE_TYPES:
        raise UnsupportedMediaError(
            f"Unsupported content type: {normalised or 'unknown'}"
        )
    if normalised == "image/jpg":
        return "image/jpeg"
    return normalised
