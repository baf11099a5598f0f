"""Image authenticity analysis orchestration for /api/detect.

Model scoring, EXIF extraction, error level analysis and the provenance scan
are independent, so they run concurrently. Pillow work goes to the default
thread pool to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from veritas.analysis.models import ModelScore, get_model_score
from veritas.analysis.scoring import calculate_confidence
from veritas.config import AnalysisConfig
from veritas.constants import ELA_FLAG_THRESHOLD, IMAGE_DOWNLOAD_TIMEOUT_S, MAX_IMAGE_BYTES
from veritas.errors import (
    InvalidImageError,
    StorageError,
    StorageNotConfigured,
    UpstreamUnavailableError,
)
from veritas.images.forensics import ElaResult, error_level_analysis, scan_provenance
from veritas.images.metadata import extract_metadata
from veritas.storage.protocol import BlobStore
from veritas.utils.ids import generate_blob_filename
from veritas.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

DOWNLOAD_FAILED_MESSAGE = "Failed to download image from URL"


@dataclass
class AnalysisResult:
    confidence: int
    model: ModelScore
    metadata: dict[str, Any]
    provenance: dict[str, Any]
    ela_score: Optional[float] = None
    ela_image_url: Optional[str] = None
    clones: list[dict[str, int]] = field(default_factory=list)
    reverse_matches: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidence": self.confidence,
            "modelScore": self.model.score,
            "modelConfigured": self.model.configured,
            "reverseMatches": self.reverse_matches,
            "forensic": {
                "elaImageUrl": self.ela_image_url,
                "elaScore": self.ela_score,
                "clones": self.clones,
                "metadata": self.metadata,
            },
            "provenance": self.provenance,
        }


async def download_image(client: httpx.AsyncClient, url: str) -> bytes:
    """Fetch an image by URL, capped at MAX_IMAGE_BYTES and the download timeout.

    Raises:
        InvalidImageError: Any network failure, non-2xx status or oversize body.
    """
    try:
        async with client.stream(
            "GET", url, timeout=IMAGE_DOWNLOAD_TIMEOUT_S, follow_redirects=True
        ) as response:
            response.raise_for_status()
            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > MAX_IMAGE_BYTES:
                    raise InvalidImageError(
                        DOWNLOAD_FAILED_MESSAGE, details={"reason": "too_large"}
                    )
                chunks.append(chunk)
    except httpx.HTTPError as exc:
        logger.warning(
            "image_download_failed",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        raise InvalidImageError(DOWNLOAD_FAILED_MESSAGE) from exc

    data = b"".join(chunks)
    if not data:
        raise InvalidImageError(DOWNLOAD_FAILED_MESSAGE, details={"reason": "empty"})
    return data


def _safe_ela(data: bytes) -> Optional[ElaResult]:
    try:
        return error_level_analysis(data)
    except ValueError as exc:
        logger.warning("ela_failed", error=str(exc))
        return None


async def _store_ela_image(
    store: BlobStore, ela: ElaResult, public_base_url: Optional[str]
) -> Optional[str]:
    pathname = "ela_" + generate_blob_filename("png")
    try:
        blob = await store.put(pathname, ela.image, "image/png", base_url=public_base_url)
    except (StorageNotConfigured, StorageError, UpstreamUnavailableError) as exc:
        logger.info("ela_image_not_stored", reason=exc.message or exc.error)
        return None
    return blob.url


def count_forensic_flags(clones: list, ela_score: Optional[float]) -> int:
    flags = len(clones)
    if ela_score is not None and ela_score > ELA_FLAG_THRESHOLD:
        flags += 1
    return flags


async def analyse_image(
    data: bytes,
    *,
    client: httpx.AsyncClient,
    config: AnalysisConfig,
    store: BlobStore,
    public_base_url: Optional[str] = None,
) -> AnalysisResult:
    """Run every analysis on image bytes and compute the confidence score."""
    with PerformanceLogger("image_analysis", logger, slow_ms=5000.0):
        model, metadata, ela, provenance = await asyncio.gather(
            get_model_score(client, config, data),
            asyncio.to_thread(extract_metadata, data),
            asyncio.to_thread(_safe_ela, data),
            asyncio.to_thread(scan_provenance, data),
        )

        ela_image_url = None
        if ela is not None:
            ela_image_url = await _store_ela_image(store, ela, public_base_url)

    # Clone detection is not implemented; no regions are ever reported.
    clones: list[dict[str, int]] = []
    ela_score = ela.score if ela is not None else None
    flags = count_forensic_flags(clones, ela_score)

    result = AnalysisResult(
        confidence=calculate_confidence(model.score, flags, 0),
        model=model,
        metadata=metadata,
        provenance=provenance,
        ela_score=ela_score,
        ela_image_url=ela_image_url,
        clones=clones,
    )
    logger.info(
        "image_analysed",
        confidence=result.confidence,
        model_backend=model.backend,
        model_ok=model.ok,
        forensic_flags=flags,
        ela_score=ela_score,
    )
    return result
