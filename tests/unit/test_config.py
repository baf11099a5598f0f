"""Unit tests for config loading, validation and environment overrides.

Covers:
  - Missing config file → Config.defaults(), no exception
  - Missing / unsupported version, invalid YAML, non-mapping → SystemExit(1)
  - Invalid storage.backend → SystemExit(1)
  - Section values merged onto defaults
  - VERITAS_CONFIG env var search path
  - Port overrides (VERITAS_PORT wins over PORT; invalid → SystemExit)
  - Secrets come only from the environment, never YAML
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from veritas.config import (
    DEFAULT_HUGGINGFACE_MODEL_URL,
    SUPPORTED_VERSIONS,
    VALID_STORAGE_BACKENDS,
    Config,
    load_config,
)


def _write(tmp_path: Path, content: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(textwrap.dedent(content))
    return str(path)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a stray .veritas/config.yaml in the repo from being picked up."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))


# ─── Defaults ─────────────────────────────────────────────────────────────────


class TestMissingConfigFile:
    def test_nonexistent_path_returns_defaults(self) -> None:
        config = load_config(config_path="/nonexistent/path/config.yaml")
        assert isinstance(config, Config)
        assert config.version == 1
        assert config.path is None

    def test_default_server_binding(self) -> None:
        config = load_config(config_path="/nonexistent/path/config.yaml")
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 3001
        assert config.server.public_base_url is None

    def test_default_storage(self) -> None:
        config = load_config(config_path="/nonexistent/path/config.yaml")
        assert config.storage.backend == "auto"
        assert config.storage.local_dir == "uploads"
        assert config.storage.ttl_seconds == 3600
        assert config.storage.cache_max_age == 3600
        assert config.storage.blob_token is None

    def test_default_analysis(self) -> None:
        config = load_config(config_path="/nonexistent/path/config.yaml")
        assert config.analysis.fallback_model_score == 0.68
        assert config.analysis.huggingface_model_url == DEFAULT_HUGGINGFACE_MODEL_URL
        assert config.analysis.model_configured is False

    def test_default_search_has_no_providers_enabled(self) -> None:
        config = load_config(config_path="/nonexistent/path/config.yaml")
        assert config.search.tineye_enabled is False
        assert config.search.bing_enabled is False


# ─── Validation ───────────────────────────────────────────────────────────────


class TestConfigValidation:
    def test_missing_version_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        path = _write(tmp_path, "server:\n  port: 4000\n")
        with pytest.raises(SystemExit) as exc_info:
            load_config(config_path=path)
        assert exc_info.value.code == 1
        assert "version" in capsys.readouterr().err

    def test_empty_file_exits(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "")
        with pytest.raises(SystemExit):
            load_config(config_path=path)

    def test_unsupported_version_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        path = _write(tmp_path, "version: 2\n")
        with pytest.raises(SystemExit) as exc_info:
            load_config(config_path=path)
        assert exc_info.value.code == 1
        assert "Unsupported config version" in capsys.readouterr().err

    def test_invalid_yaml_exits(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        path = _write(tmp_path, "version: 1\nserver: [unclosed\n")
        with pytest.raises(SystemExit):
            load_config(config_path=path)
        assert "Failed to parse" in capsys.readouterr().err

    def test_non_mapping_exits(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "- version\n- 1\n")
        with pytest.raises(SystemExit):
            load_config(config_path=path)

    def test_invalid_storage_backend_exits(
        self, tmp_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        path = _write(tmp_path, "version: 1\nstorage:\n  backend: s3\n")
        with pytest.raises(SystemExit):
            load_config(config_path=path)
        assert "storage.backend" in capsys.readouterr().err

    def test_supported_constants(self) -> None:
        assert SUPPORTED_VERSIONS == frozenset({1})
        assert VALID_STORAGE_BACKENDS == frozenset({"auto", "vercel", "local"})


# ─── Loading ──────────────────────────────────────────────────────────────────


class TestConfigLoading:
    def test_sections_merged_onto_defaults(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            """
            version: 1
            server:
              host: 0.0.0.0
              public_base_url: https://veritas.example.org/
            storage:
              backend: local
              local_dir: /var/lib/veritas
              ttl_seconds: 600
            search:
              timeout_s: 12.5
            analysis:
              fallback_model_score: 0.5
              pytorch_endpoint: http://model:8000/predict
            """,
        )
        config = load_config(config_path=path)

        assert config.path == path
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 3001
        assert config.server.public_base_url == "https://veritas.example.org"
        assert config.storage.backend == "local"
        assert config.storage.local_dir == "/var/lib/veritas"
        assert config.storage.ttl_seconds == 600
        assert config.search.timeout_s == 12.5
        assert config.analysis.fallback_model_score == 0.5
        assert config.analysis.model_configured is True

    def test_veritas_config_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write(tmp_path, "version: 1\nserver:\n  port: 5050\n")
        monkeypatch.setenv("VERITAS_CONFIG", path)
        assert load_config().server.port == 5050

    def test_dot_veritas_in_working_directory(self, tmp_path: Path) -> None:
        (tmp_path / ".veritas").mkdir()
        (tmp_path / ".veritas" / "config.yaml").write_text("version: 1\nserver:\n  port: 6060\n")
        assert load_config().server.port == 6060

    def test_blob_token_in_yaml_is_ignored(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "version: 1\nstorage:\n  blob_token: from-yaml\n")
        assert load_config(config_path=path).storage.blob_token is None


# ─── Environment overrides ────────────────────────────────────────────────────


class TestEnvOverrides:
    def test_port_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "8080")
        assert load_config(config_path="/nonexistent.yaml").server.port == 8080

    def test_veritas_port_wins_over_port(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("VERITAS_PORT", "9090")
        assert load_config(config_path="/nonexistent.yaml").server.port == 9090

    def test_invalid_port_exits(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        monkeypatch.setenv("VERITAS_PORT", "not-a-port")
        with pytest.raises(SystemExit):
            load_config(config_path="/nonexistent.yaml")
        assert "VERITAS_PORT" in capsys.readouterr().err

    def test_secrets_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BLOB_READ_WRITE_TOKEN", "vercel_blob_rw_abc")
        monkeypatch.setenv("TINEYE_API_KEY", "tin-pub")
        monkeypatch.setenv("TINEYE_PRIVATE_KEY", "tin-priv")
        monkeypatch.setenv("BING_VISUAL_SEARCH_KEY", "bing-key")
        monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf-key")

        config = load_config(config_path="/nonexistent.yaml")

        assert config.storage.blob_token == "vercel_blob_rw_abc"
        assert config.search.tineye_enabled is True
        assert config.search.bing_enabled is True
        assert config.analysis.model_configured is True

    def test_tineye_needs_both_keys(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TINEYE_API_KEY", "tin-pub")
        assert load_config(config_path="/nonexistent.yaml").search.tineye_enabled is False

    def test_endpoint_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BING_VISUAL_SEARCH_ENDPOINT", "https://bing.test/visualsearch")
        monkeypatch.setenv("HUGGINGFACE_MODEL_URL", "https://hf.test/models/x")
        monkeypatch.setenv("PYTORCH_MODEL_ENDPOINT", "http://torch.test/predict")

        config = load_config(config_path="/nonexistent.yaml")

        assert config.search.bing_endpoint == "https://bing.test/visualsearch"
        assert config.analysis.huggingface_model_url == "https://hf.test/models/x"
        assert config.analysis.pytorch_endpoint == "http://torch.test/predict"

    def test_secrets_hidden_from_repr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BLOB_READ_WRITE_TOKEN", "super-secret-token")
        config = load_config(config_path="/nonexistent.yaml")
        assert "super-secret-token" not in repr(config)
