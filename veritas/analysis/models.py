"""Authenticity model clients.

Backend precedence:
  1. Hugging Face inference API   (HUGGINGFACE_API_KEY set)
     POST raw bytes, bearer auth → ``[{"label": ..., "score": ...}, ...]``
  2. PyTorch model server          (PYTORCH_MODEL_ENDPOINT set)
     POST multipart ``image``    → ``{"authenticity_score": ...}``
  3. none configured

A failed call or an unconfigured model yields the fallback score with
``configured``/``ok`` flags so the response can say the score is not real.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from veritas.config import AnalysisConfig
from veritas.utils.logger import PerformanceLogger, get_logger

logger = get_logger(__name__)

HUGGINGFACE_TIMEOUT_S = 30.0
PYTORCH_TIMEOUT_S = 45.0


@dataclass(frozen=True)
class ModelScore:
    score: float
    backend: Optional[str]
    configured: bool
    ok: bool


def _huggingface_score(payload: Any) -> Optional[float]:
    # Some pipelines nest the label list one level deeper.
    if isinstance(payload, list) and payload and isinstance(payload[0], list):
        payload = payload[0]
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        value = payload[0].get("score")
        if isinstance(value, (int, float)):
            return float(value)
    return None


def _pytorch_score(payload: Any) -> Optional[float]:
    if isinstance(payload, dict):
        value = payload.get("authenticity_score")
        if isinstance(value, (int, float)):
            return float(value)
    return None


async def score_with_huggingface(
    client: httpx.AsyncClient, config: AnalysisConfig, data: bytes
) -> Optional[float]:
    response = await client.post(
        config.huggingface_model_url,
        content=data,
        headers={
            "Authorization": f"Bearer {config.huggingface_api_key}",
            "Content-Type": "application/octet-stream",
        },
        timeout=HUGGINGFACE_TIMEOUT_S,
    )
    response.raise_for_status()
    return _huggingface_score(response.json())


async def score_with_pytorch(
    client: httpx.AsyncClient, config: AnalysisConfig, data: bytes
) -> Optional[float]:
    response = await client.post(
        config.pytorch_endpoint,
        files={"image": ("image", data, "application/octet-stream")},
        timeout=PYTORCH_TIMEOUT_S,
    )
    response.raise_for_status()
    return _pytorch_score(response.json())


async def get_model_score(
    client: httpx.AsyncClient, config: AnalysisConfig, data: bytes
) -> ModelScore:
    """Score an image with the configured model, falling back on any failure."""
    fallback = config.fallback_model_score

    if config.huggingface_api_key:
        backend, call = "huggingface", score_with_huggingface
    elif config.pytorch_endpoint:
        backend, call = "pytorch", score_with_pytorch
    else:
        logger.debug("model_not_configured", fallback_score=fallback)
        return ModelScore(score=fallback, backend=None, configured=False, ok=False)

    try:
        with PerformanceLogger(f"model_score_{backend}", logger, slow_ms=5000.0):
            score = await call(client, config, data)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning(
            "model_score_failed",
            backend=backend,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return ModelScore(score=fallback, backend=backend, configured=True, ok=False)

    if score is None:
        logger.warning("model_score_unparseable", backend=backend)
        return ModelScore(score=fallback, backend=backend, configured=True, ok=False)

    return ModelScore(score=score, backend=backend, configured=True, ok=True)
