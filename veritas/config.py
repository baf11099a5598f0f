"""Runtime configuration for Veritas.

Settings come from a versioned YAML file, the first one found among:
  1. the ``config_path`` argument
  2. $VERITAS_CONFIG
  3. ``.veritas/config.yaml`` in the working directory
  4. ``~/.veritas/config.yaml``

No file at all means built-in defaults. A file that exists but cannot be
parsed, lacks ``version`` or names an unknown storage backend aborts startup.

Credentials are environment-only and any YAML copy is ignored:
  BLOB_READ_WRITE_TOKEN, HUGGINGFACE_API_KEY, TINEYE_API_KEY,
  TINEYE_PRIVATE_KEY, BING_VISUAL_SEARCH_KEY

Plain settings the environment may also override:
  VERITAS_PORT / PORT          server.port (VERITAS_PORT wins)
  HUGGINGFACE_MODEL_URL        analysis.huggingface_model_url
  PYTORCH_MODEL_ENDPOINT       analysis.pytorch_endpoint
  BING_VISUAL_SEARCH_ENDPOINT  search.bing_endpoint
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from veritas.constants import (
    BLOB_CACHE_MAX_AGE,
    DEFAULT_FALLBACK_MODEL_SCORE,
    LOCAL_UPLOAD_TTL_S,
    OUTBOUND_TIMEOUT_S,
)
from veritas.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_STORAGE_BACKENDS: frozenset[str] = frozenset({"auto", "vercel", "local"})

DEFAULT_CONFIG_PATHS = [
    ".veritas/config.yaml",
    os.path.expanduser("~/.veritas/config.yaml"),
]

DEFAULT_VERCEL_BLOB_URL = "https://blob.vercel-storage.com"
DEFAULT_BING_ENDPOINT = "https://api.bing.microsoft.com/v7.0/images/visualsearch"
DEFAULT_HUGGINGFACE_MODEL_URL = (
    "https://api-inference.huggingface.co/models/umm-maybe/AI-image-detector"
)


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """HTTP binding and the externally visible base URL.

    public_base_url is used to build links to locally stored uploads. When
    unset, the base URL of the incoming request is used instead.
    """

    host: str = "127.0.0.1"
    port: int = 3001
    public_base_url: Optional[str] = None


@dataclass
class StorageConfig:
    """Blob storage selection.

    backend: "auto"   → Vercel Blob when BLOB_READ_WRITE_TOKEN is set, else local
             "vercel" → Vercel Blob (uploads fail with 500 if the token is missing)
             "local"  → files under local_dir, served at /uploads/<name>
    """

    backend: str = "auto"
    local_dir: str = "uploads"
    ttl_seconds: int = LOCAL_UPLOAD_TTL_S
    cache_max_age: int = BLOB_CACHE_MAX_AGE
    vercel_base_url: str = DEFAULT_VERCEL_BLOB_URL
    blob_token: Optional[str] = field(default=None, repr=False)


@dataclass
class SearchConfig:
    """Automated reverse-search provider credentials and timeouts."""

    timeout_s: float = OUTBOUND_TIMEOUT_S
    bing_endpoint: str = DEFAULT_BING_ENDPOINT
    tineye_api_key: Optional[str] = field(default=None, repr=False)
    tineye_private_key: Optional[str] = field(default=None, repr=False)
    bing_key: Optional[str] = field(default=None, repr=False)

    @property
    def tineye_enabled(self) -> bool:
        return bool(self.tineye_api_key and self.tineye_private_key)

    @property
    def bing_enabled(self) -> bool:
        return bool(self.bing_key)


@dataclass
class AnalysisConfig:
    """Authenticity model endpoints for /api/detect."""

    fallback_model_score: float = DEFAULT_FALLBACK_MODEL_SCORE
    huggingface_model_url: str = DEFAULT_HUGGINGFACE_MODEL_URL
    pytorch_endpoint: Optional[str] = None
    huggingface_api_key: Optional[str] = field(default=None, repr=False)

    @property
    def model_configured(self) -> bool:
        return bool(self.huggingface_api_key or self.pytorch_endpoint)


@dataclass
class Config:
    """Root configuration object populated from .veritas/config.yaml.

    All fields have safe defaults — Veritas can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On invalid storage.backend value.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=server_raw.get("port", 3001),
            public_base_url=_strip_trailing_slash(server_raw.get("public_base_url")),
        )

        # ── Storage ───────────────────────────────────────────────────────────
        storage_raw = raw.get("storage") or {}
        backend = storage_raw.get("backend", "auto")
        if backend not in VALID_STORAGE_BACKENDS:
            _config_error(
                f"Invalid storage.backend: '{backend}'. "
                f"Supported values: {sorted(VALID_STORAGE_BACKENDS)}."
            )
        storage = StorageConfig(
            backend=backend,
            local_dir=storage_raw.get("local_dir", "uploads"),
            ttl_seconds=storage_raw.get("ttl_seconds", LOCAL_UPLOAD_TTL_S),
            cache_max_age=storage_raw.get("cache_max_age", BLOB_CACHE_MAX_AGE),
            vercel_base_url=storage_raw.get("vercel_base_url", DEFAULT_VERCEL_BLOB_URL),
        )

        # ── Search ────────────────────────────────────────────────────────────
        search_raw = raw.get("search") or {}
        search = SearchConfig(
            timeout_s=search_raw.get("timeout_s", OUTBOUND_TIMEOUT_S),
            bing_endpoint=search_raw.get("bing_endpoint", DEFAULT_BING_ENDPOINT),
        )

        # ── Analysis ──────────────────────────────────────────────────────────
        analysis_raw = raw.get("analysis") or {}
        analysis = AnalysisConfig(
            fallback_model_score=analysis_raw.get(
                "fallback_model_score", DEFAULT_FALLBACK_MODEL_SCORE
            ),
            huggingface_model_url=analysis_raw.get(
                "huggingface_model_url", DEFAULT_HUGGINGFACE_MODEL_URL
            ),
            pytorch_endpoint=analysis_raw.get("pytorch_endpoint"),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            storage=storage,
            search=search,
            analysis=analysis,
            path=path,
        )


def _strip_trailing_slash(url: Optional[str]) -> Optional[str]:
    return url.rstrip("/") if url else None


# ─── Config loading ───────────────────────────────────────────────────────────


def _config_error(message: str) -> NoReturn:
    """Report a fatal configuration problem on stderr and stop the process."""
    print(f"CONFIG ERROR: {message}", file=sys.stderr)
    raise SystemExit(1)


def _candidate_paths(config_path: Optional[str]) -> list[str]:
    """Explicit argument first, then $VERITAS_CONFIG, then the default locations."""
    explicit = [config_path, os.environ.get("VERITAS_CONFIG")]
    return [p for p in explicit if p] + list(DEFAULT_CONFIG_PATHS)


def _find_config_file(candidates: list[str]) -> Optional[str]:
    for candidate in candidates:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            return expanded
    return None


def _read_versioned_yaml(path: str) -> dict:
    """Parse ``path`` and check it is a mapping carrying a supported ``version``."""
    try:
        with open(path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _config_error(
            f"Failed to parse {path}: {exc}\n"
            "Veritas will not start with a broken config file; fix the YAML syntax."
        )
    except OSError as exc:
        _config_error(f"Could not read {path}: {exc}")

    missing_version = (
        f"{path} has no 'version' field.\n"
        f"Start the file with 'version: {SUPPORTED_CONFIG_VERSION}'."
    )
    if raw is None:
        _config_error(missing_version)
    if not isinstance(raw, dict):
        _config_error(f"{path} must contain a YAML mapping at the top level.")

    version = raw.get("version")
    if version is None:
        _config_error(missing_version)
    if version not in SUPPORTED_VERSIONS:
        _config_error(
            f"Unsupported config version {version!r} in {path}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )
    return raw


def load_config(config_path: Optional[str] = None) -> Config:
    """Build the runtime Config.

    A missing file is fine: defaults are used. A file that exists but is
    unreadable or invalid stops startup with SystemExit(1). Environment
    overrides and secrets are layered on top either way.
    """
    candidates = _candidate_paths(config_path)
    found_path = _find_config_file(candidates)

    if found_path is None:
        logger.info("config_file_not_found", searched=candidates)
        config = Config.defaults()
    else:
        config = Config.from_dict(_read_versioned_yaml(found_path), path=found_path)
    _apply_env_overrides(config)

    if config.server.host == "0.0.0.0" and not config.server.public_base_url:
        logger.warning(
            "public_base_url_unset",
            detail="local upload links will be built from the request Host header",
        )

    logger.info(
        "config_loaded",
        path=found_path,
        storage_backend=config.storage.backend,
        public_base_url=config.server.public_base_url,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides and secrets to a Config in-place.

    Called for both file-loaded and default configs so env vars always take
    precedence over any file value.

    Raises:
        SystemExit(1): If VERITAS_PORT / PORT is set but not a valid integer.
    """
    env_port_name = "VERITAS_PORT" if os.environ.get("VERITAS_PORT") else "PORT"
    env_port = os.environ.get(env_port_name)
    if env_port:
        try:
            config.server.port = int(env_port)
        except ValueError:
            _config_error(f"{env_port_name} must be an integer, got '{env_port}'")

    config.storage.blob_token = os.environ.get("BLOB_READ_WRITE_TOKEN") or None

    config.search.tineye_api_key = os.environ.get("TINEYE_API_KEY") or None
    config.search.tineye_private_key = os.environ.get("TINEYE_PRIVATE_KEY") or None
    config.search.bing_key = os.environ.get("BING_VISUAL_SEARCH_KEY") or None
    bing_endpoint = os.environ.get("BING_VISUAL_SEARCH_ENDPOINT")
    if bing_endpoint:
        config.search.bing_endpoint = bing_endpoint

    config.analysis.huggingface_api_key = os.environ.get("HUGGINGFACE_API_KEY") or None
    hf_url = os.environ.get("HUGGINGFACE_MODEL_URL")
    if hf_url:
        config.analysis.huggingface_model_url = hf_url
    pytorch_endpoint = os.environ.get("PYTORCH_MODEL_ENDPOINT")
    if pytorch_endpoint:
        config.analysis.pytorch_endpoint = pytorch_endpoint
