"""Unit tests for authenticity analysis (veritas/analysis/).

Covers:
  - get_model_score: unconfigured fallback, Hugging Face and PyTorch
    request contracts, failures and unparseable payloads → fallback
  - download_image: success, HTTP error, oversized body
  - count_forensic_flags threshold
  - analyse_image: response shape, ELA image stored, storage failure tolerated
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from veritas.analysis.detect import analyse_image, count_forensic_flags, download_image
from veritas.analysis.models import ModelScore, get_model_score
from veritas.config import AnalysisConfig
from veritas.constants import MAX_IMAGE_BYTES
from veritas.errors import InvalidImageError
from veritas.storage import UnconfiguredBlobStore
from veritas.storage.local import LocalBlobStore


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ─── Model scoring ────────────────────────────────────────────────────────────


class TestGetModelScore:
    @pytest.mark.asyncio
    async def test_unconfigured_returns_fallback(self) -> None:
        async with _client(lambda r: httpx.Response(500)) as client:
            score = await get_model_score(client, AnalysisConfig(), b"img")
        assert score == ModelScore(score=0.68, backend=None, configured=False, ok=False)

    @pytest.mark.asyncio
    async def test_huggingface_contract(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"label": "real", "score": 0.91}, {"label": "fake", "score": 0.09}])

        config = AnalysisConfig(huggingface_api_key="hf_test", huggingface_model_url="https://hf.test/model")
        async with _client(handler) as client:
            score = await get_model_score(client, config, b"img-bytes")

        assert score == ModelScore(score=0.91, backend="huggingface", configured=True, ok=True)
        request = seen[0]
        assert str(request.url) == "https://hf.test/model"
        assert request.headers["authorization"] == "Bearer hf_test"
        assert request.content == b"img-bytes"

    @pytest.mark.asyncio
    async def test_huggingface_nested_list(self) -> None:
        config = AnalysisConfig(huggingface_api_key="hf_test")
        async with _client(lambda r: httpx.Response(200, json=[[{"score": 0.3}]])) as client:
            score = await get_model_score(client, config, b"img")
        assert score.score == 0.3

    @pytest.mark.asyncio
    async def test_huggingface_preferred_over_pytorch(self) -> None:
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(200, json=[{"score": 0.5}])

        config = AnalysisConfig(
            huggingface_api_key="hf_test",
            huggingface_model_url="https://hf.test/model",
            pytorch_endpoint="https://torch.test/predict",
        )
        async with _client(handler) as client:
            await get_model_score(client, config, b"img")
        assert hosts == ["hf.test"]

    @pytest.mark.asyncio
    async def test_pytorch_contract(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"authenticity_score": 0.77})

        config = AnalysisConfig(pytorch_endpoint="https://torch.test/predict")
        async with _client(handler) as client:
            score = await get_model_score(client, config, b"img-bytes")

        assert score == ModelScore(score=0.77, backend="pytorch", configured=True, ok=True)
        assert seen[0].headers["content-type"].startswith("multipart/form-data")
        assert b'name="image"' in seen[0].read()

    @pytest.mark.asyncio
    async def test_http_failure_falls_back(self) -> None:
        config = AnalysisConfig(pytorch_endpoint="https://torch.test/predict")
        async with _client(lambda r: httpx.Response(503)) as client:
            score = await get_model_score(client, config, b"img")
        assert score == ModelScore(score=0.68, backend="pytorch", configured=True, ok=False)

    @pytest.mark.asyncio
    async def test_invalid_json_falls_back(self) -> None:
        config = AnalysisConfig(huggingface_api_key="hf_test")
        async with _client(lambda r: httpx.Response(200, content=b"<html>")) as client:
            score = await get_model_score(client, config, b"img")
        assert score.ok is False
        assert score.score == 0.68

    @pytest.mark.asyncio
    async def test_unparseable_payload_falls_back(self) -> None:
        config = AnalysisConfig(pytorch_endpoint="https://torch.test/predict")
        async with _client(lambda r: httpx.Response(200, json={"score": "high"})) as client:
            score = await get_model_score(client, config, b"img")
        assert score.ok is False
        assert score.configured is True


# ─── Download ─────────────────────────────────────────────────────────────────


class TestDownloadImage:
    @pytest.mark.asyncio
    async def test_success(self, jpeg_bytes: bytes) -> None:
        async with _client(lambda r: httpx.Response(200, content=jpeg_bytes)) as client:
            assert await download_image(client, "https://cdn.example.com/a.jpg") == jpeg_bytes

    @pytest.mark.asyncio
    async def test_http_error(self) -> None:
        async with _client(lambda r: httpx.Response(404)) as client:
            with pytest.raises(InvalidImageError) as exc_info:
                await download_image(client, "https://cdn.example.com/a.jpg")
        assert exc_info.value.message == "Failed to download image from URL"

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(InvalidImageError):
                await download_image(client, "https://cdn.example.com/a.jpg")

    @pytest.mark.asyncio
    async def test_oversized_body(self) -> None:
        body = b"\x00" * (MAX_IMAGE_BYTES + 1)
        async with _client(lambda r: httpx.Response(200, content=body)) as client:
            with pytest.raises(InvalidImageError) as exc_info:
                await download_image(client, "https://cdn.example.com/a.jpg")
        assert exc_info.value.details == {"reason": "too_large"}

    @pytest.mark.asyncio
    async def test_empty_body(self) -> None:
        async with _client(lambda r: httpx.Response(200, content=b"")) as client:
            with pytest.raises(InvalidImageError):
                await download_image(client, "https://cdn.example.com/a.jpg")


# ─── Orchestration ────────────────────────────────────────────────────────────


class TestCountForensicFlags:
    def test_ela_above_threshold_counts(self) -> None:
        assert count_forensic_flags([], 0.5) == 1
        assert count_forensic_flags([], 0.1) == 0
        assert count_forensic_flags([], None) == 0
        assert count_forensic_flags([{"x": 0}], 0.5) == 2


class TestAnalyseImage:
    @pytest.mark.asyncio
    async def test_result_shape_with_stored_ela(self, tmp_path: Path, jpeg_bytes: bytes) -> None:
        store = LocalBlobStore(tmp_path, public_base_url="https://veritas.example.org")
        async with _client(lambda r: httpx.Response(500)) as client:
            result = await analyse_image(
                jpeg_bytes, client=client, config=AnalysisConfig(), store=store
            )

        body = result.to_dict()
        assert 0 <= body["confidence"] <= 100
        assert body["modelScore"] == 0.68
        assert body["modelConfigured"] is False
        assert body["reverseMatches"] == []
        assert body["forensic"]["clones"] == []
        assert 0.0 <= body["forensic"]["elaScore"] <= 1.0
        assert body["forensic"]["elaImageUrl"].startswith("https://veritas.example.org/uploads/ela_img_")
        assert body["forensic"]["metadata"]["dimensions"] == {"width": 64, "height": 48}
        assert body["provenance"]["synthIdDetected"] is False

        stored = list(tmp_path.iterdir())
        assert len(stored) == 1
        assert stored[0].read_bytes().startswith(b"\x89PNG")

    @pytest.mark.asyncio
    async def test_storage_failure_leaves_ela_url_empty(self, jpeg_bytes: bytes) -> None:
        async with _client(lambda r: httpx.Response(500)) as client:
            result = await analyse_image(
                jpeg_bytes, client=client, config=AnalysisConfig(), store=UnconfiguredBlobStore()
            )
        assert result.ela_image_url is None
        assert result.ela_score is not None

    @pytest.mark.asyncio
    async def test_undecodable_bytes_still_scored(self) -> None:
        async with _client(lambda r: httpx.Response(500)) as client:
            result = await analyse_image(
                b"not an image", client=client, config=AnalysisConfig(), store=UnconfiguredBlobStore()
            )
        assert result.ela_score is None
        assert result.metadata == {}
        assert result.confidence == 87

    @pytest.mark.asyncio
    async def test_decompression_bomb_still_scored(self, oversized_png_bytes: bytes) -> None:
        async with _client(lambda r: httpx.Response(500)) as client:
            result = await analyse_image(
                oversized_png_bytes, client=client, config=AnalysisConfig(), store=UnconfiguredBlobStore()
            )
        assert result.ela_score is None
        assert result.metadata == {}
        assert result.confidence == 87
