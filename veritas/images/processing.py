"""Upload normalisation with Pillow.

Every image bound for public blob storage is:
  1. rotated upright according to its EXIF orientation,
  2. fitted inside MAX_IMAGE_DIMENSION × MAX_IMAGE_DIMENSION (never enlarged),
  3. re-encoded as progressive JPEG at JPEG_QUALITY.

Re-encoding drops EXIF (including GPS) because no ``exif=`` argument is
passed to ``save()``, so the public copy never leaks location data.

If Pillow cannot decode the input the original bytes are returned unchanged
and ``processed`` is False; the upload still goes ahead.
"""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageOps, UnidentifiedImageError

from veritas.constants import JPEG_QUALITY, MAX_IMAGE_DIMENSION
from veritas.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessedImage:
    data: bytes
    content_type: str
    original_size: int
    processed: bool

    @property
    def processed_size(self) -> int:
        return len(self.data)

    @property
    def compression_ratio(self) -> int:
        """Size reduction in whole percent (negative when the image grew)."""
        if self.original_size == 0:
            return 0
        return round((1 - self.processed_size / self.original_size) * 100)


def normalise_image(
    data: bytes,
    *,
    max_dimension: int = MAX_IMAGE_DIMENSION,
    quality: int = JPEG_QUALITY,
    fallback_content_type: str = "image/jpeg",
) -> ProcessedImage:
    """Orient, downscale and re-encode an image as JPEG.

    Args:
        data:                  Raw image bytes.
        max_dimension:         Bounding box edge in pixels.
        quality:               JPEG quality (1-95).
        fallback_content_type: Content type reported when processing fails and
                               the original bytes are passed through.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            # thumbnail() keeps aspect ratio and never enlarges
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality, progressive=True, optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        logger.warning(
            "image_processing_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            original_size=len(data),
        )
        return ProcessedImage(
            data=data,
            content_type=fallback_content_type,
            original_size=len(data),
            processed=False,
        )

    result = ProcessedImage(
        data=out.getvalue(),
        content_type="image/jpeg",
        original_size=len(data),
        processed=True,
    )
    logger.debug(
        "image_processed",
        original_size=result.original_size,
        processed_size=result.processed_size,
        compression_ratio=result.compression_ratio,
    )
    return result
