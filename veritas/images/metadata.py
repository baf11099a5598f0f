"""EXIF metadata extraction for the analysis endpoint.

Only a curated subset is returned — the fields a person checking an image's
origin actually looks at:

    {
      "camera":     "Apple iPhone 13 Pro",
      "timestamp":  "2024:01:15 10:30:00",
      "gps":        {"lat": 37.7749, "lng": -122.4194},
      "software":   "Adobe Photoshop 25.0",
      "dimensions": {"width": 4032, "height": 3024}
    }

Keys are omitted when the source data is missing. Any decoding failure yields
an empty dict; metadata is advisory and never fails a request.
"""

from __future__ import annotations

import io
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError
from PIL.ExifTags import GPSTAGS

from veritas.utils.logger import get_logger

logger = get_logger(__name__)

# ─── EXIF tag IDs ─────────────────────────────────────────────────────────────

_TAG_MAKE = 0x010F
_TAG_MODEL = 0x0110
_TAG_SOFTWARE = 0x0131
_TAG_DATETIME = 0x0132
_TAG_DATETIME_ORIGINAL = 0x9003
_IFD_EXIF = 0x8769
_IFD_GPS = 0x8825


def extract_metadata(data: bytes) -> dict[str, Any]:
    """Return the curated metadata dict for an image (see module docstring)."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            exif = img.getexif()
            base = dict(exif.items())
            exif_ifd = dict(exif.get_ifd(_IFD_EXIF).items())
            gps_ifd = dict(exif.get_ifd(_IFD_GPS).items())
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
        SyntaxError,
    ) as exc:
        logger.warning("metadata_extraction_failed", error=str(exc))
        return {}

    metadata: dict[str, Any] = {}

    make = _clean_text(base.get(_TAG_MAKE))
    model = _clean_text(base.get(_TAG_MODEL))
    if make and model:
        metadata["camera"] = f"{make} {model}"

    timestamp = _clean_text(exif_ifd.get(_TAG_DATETIME_ORIGINAL)) or _clean_text(
        base.get(_TAG_DATETIME)
    )
    if timestamp:
        metadata["timestamp"] = timestamp

    gps = _parse_gps(gps_ifd)
    if gps is not None:
        metadata["gps"] = gps

    software = _clean_text(base.get(_TAG_SOFTWARE))
    if software:
        metadata["software"] = software

    if width and height:
        metadata["dimensions"] = {"width": width, "height": height}

    return metadata


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).strip("\x00 ").strip()
    return text or None


def _to_degrees(value: Any) -> float:
    """Convert an EXIF (degrees, minutes, seconds) rational triple to decimal."""
    if isinstance(value, (list, tuple)) and len(value) >= 3:
        d, m, s = (float(part) for part in value[:3])
        return d + m / 60.0 + s / 3600.0
    return float(value)


def _parse_gps(gps_ifd: dict[int, Any]) -> Optional[dict[str, float]]:
    if not gps_ifd:
        return None
    tags = {GPSTAGS.get(key, key): val for key, val in gps_ifd.items()}
    try:
        lat = _to_degrees(tags["GPSLatitude"])
        lng = _to_degrees(tags["GPSLongitude"])
    except (KeyError, TypeError, ValueError, ZeroDivisionError):
        return None

    if _clean_text(tags.get("GPSLatitudeRef")) == "S":
        lat = -lat
    if _clean_text(tags.get("GPSLongitudeRef")) == "W":
        lng = -lng
    return {"lat": round(lat, 6), "lng": round(lng, 6)}
