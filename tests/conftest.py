"""Root test configuration for Veritas.

Clears every provider credential from the environment so a developer's real
BLOB_READ_WRITE_TOKEN or API keys never leak into tests (or trigger real
network calls). Tests that need a credential set it with monkeypatch.

Also provides Pillow-generated test images.
"""

import base64
import io
import struct
import zlib
from typing import Callable, Optional

import pytest
from PIL import Image

_PROVIDER_ENV_VARS = (
    "VERITAS_CONFIG",
    "VERITAS_PORT",
    "PORT",
    "BLOB_READ_WRITE_TOKEN",
    "HUGGINGFACE_API_KEY",
    "HUGGINGFACE_MODEL_URL",
    "PYTORCH_MODEL_ENDPOINT",
    "TINEYE_API_KEY",
    "TINEYE_PRIVATE_KEY",
    "BING_VISUAL_SEARCH_KEY",
    "BING_VISUAL_SEARCH_ENDPOINT",
)


@pytest.fixture(autouse=True)
def clear_provider_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_rate_limiter() -> None:
    """Reset the in-memory rate limiter storage between tests.

    Prevents test-to-test rate limit bleed where multiple tests hitting the
    same endpoint within the same minute would trigger a 429.
    """
    from veritas.limiter import limiter

    limiter.reset()


# ─── Images ───────────────────────────────────────────────────────────────────


ImageFactory = Callable[..., bytes]


def _make_image(
    fmt: str = "JPEG",
    size: tuple[int, int] = (64, 48),
    color: tuple[int, int, int] = (200, 40, 40),
    exif: Optional[Image.Exif] = None,
) -> bytes:
    img = Image.new("RGB", size, color)
    # A second colour block gives ELA and the encoder something to work on.
    img.paste((20, 120, 220), (0, 0, size[0] // 2, size[1] // 2))
    out = io.BytesIO()
    kwargs = {"exif": exif} if exif is not None else {}
    img.save(out, format=fmt, **kwargs)
    return out.getvalue()


@pytest.fixture
def make_image() -> ImageFactory:
    """Factory: make_image(fmt="JPEG", size=(64, 48), color=..., exif=None) -> bytes."""
    return _make_image


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _make_image()


@pytest.fixture
def jpeg_data_url(jpeg_bytes: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode()


@pytest.fixture
def oversized_png_bytes() -> bytes:
    """A tiny PNG whose IHDR claims 20000x20000, past Pillow's decompression-bomb limit."""
    png = bytearray(_make_image(fmt="PNG", size=(8, 8)))
    # IHDR data starts at byte 16: width and height as big-endian uint32.
    png[16:24] = struct.pack(">II", 20000, 20000)
    png[29:33] = struct.pack(">I", zlib.crc32(bytes(png[12:29])))
    return bytes(png)


# ─── Application ──────────────────────────────────────────────────────────────


@pytest.fixture
def veritas_config(tmp_path):
    """Default Config with the local blob store rooted under tmp_path."""
    from veritas.config import Config

    config = Config.defaults()
    config.storage.backend = "local"
    config.storage.local_dir = str(tmp_path / "uploads")
    return config


@pytest.fixture
def app_client(monkeypatch: pytest.MonkeyPatch, veritas_config):
    """Factory: app_client(handler=None) -> TestClient over a fresh create_app().

    load_config() is patched to return ``veritas_config`` and the shared
    outbound client is an httpx.AsyncClient on a MockTransport running
    ``handler``; without a handler every outbound request gets a 599.
    Use the result as a context manager so the lifespan runs.
    """
    import httpx
    from starlette.testclient import TestClient

    from veritas.main import create_app

    def _build(handler=None) -> TestClient:
        upstream = handler or (lambda request: httpx.Response(599))
        monkeypatch.setattr("veritas.main.load_config", lambda: veritas_config)
        monkeypatch.setattr(
            "veritas.main.create_http_client",
            lambda *args, **kwargs: httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
        )
        return TestClient(create_app())

    return _build
