"""Unit tests for application configuration.

Tests cover:
- YAML layering per environment
- Nested and flat legacy environment variables
- Endpoint resolution and validation
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from webpilot.core.config import EndpointConfig, Settings, get_settings
from webpilot.core.config.yaml_source import CONFIG_DIR_ENV, deep_merge


pytestmark = pytest.mark.unit

LEGACY_VARS = (
    "OLLAMA_API_URL",
    "OLLAMA_MODEL",
    "OLLAMA_TIMEOUT_MS",
    "OLLAMA_RETRY_ATTEMPTS",
    "OLLAMA_RETRY_DELAY_MS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in LEGACY_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv(CONFIG_DIR_ENV, raising=False)
    monkeypatch.setenv("APP_ENV", "test")


# =============================================================================
# deep_merge Tests
# =============================================================================


class TestDeepMerge:
    """Tests for deep_merge helper function."""

    def test_nested_values_merged(self) -> None:
        base = {"ollama": {"model": "a", "timeout": 30.0}, "app": {"name": "x"}}
        override = {"ollama": {"timeout": 5.0}}

        assert deep_merge(base, override) == {
            "ollama": {"model": "a", "timeout": 5.0},
            "app": {"name": "x"},
        }

    def test_base_not_mutated(self) -> None:
        base = {"ollama": {"model": "a"}}

        deep_merge(base, {"ollama": {"model": "b"}})

        assert base == {"ollama": {"model": "a"}}

    def test_scalar_replaces_mapping(self) -> None:
        assert deep_merge({"a": {"b": 1}}, {"a": 2}) == {"a": 2}


# =============================================================================
# Settings Tests
# =============================================================================


class TestSettingsLayers:
    """Tests for configuration sources."""

    def test_base_yaml_loaded(self) -> None:
        settings = Settings()

        assert settings.app.name == "WebPilot"
        assert settings.ollama.url == "http://localhost:11434/api"
        assert settings.ollama.model == "granite3.2-vision"
        assert settings.assistant.response_format == "json"

    def test_environment_yaml_overrides_base(self) -> None:
        """Should apply config/environments/test over config/base."""
        settings = Settings()

        assert settings.ollama.timeout == 5.0
        assert settings.ollama.retry_delay == 0.0
        assert settings.ollama.retry_attempts == 3
        assert settings.logging.level == "WARNING"

    def test_nested_env_var_overrides_yaml(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OLLAMA__MODEL", "llama3.2")

        assert Settings().ollama.model == "llama3.2"

    def test_custom_config_dir(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Should read YAML from the directory named by the override variable."""
        (tmp_path / "base").mkdir()
        (tmp_path / "base" / "llm.yaml").write_text("ollama:\n  model: base-model\n")
        env_dir = tmp_path / "environments" / "staging"
        env_dir.mkdir(parents=True)
        (env_dir / "llm.yaml").write_text("ollama:\n  retry_attempts: 7\n")
        monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path))
        monkeypatch.setenv("APP_ENV", "staging")

        settings = Settings()

        assert settings.ollama.model == "base-model"
        assert settings.ollama.retry_attempts == 7
        assert settings.ollama.timeout == 30.0

    def test_missing_config_dir_uses_defaults(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv(CONFIG_DIR_ENV, str(tmp_path / "absent"))

        endpoint = Settings().endpoint_config

        assert endpoint.base_url == "http://localhost:11434/api"
        assert endpoint.timeout == 30.0
        assert endpoint.retry_delay == 1.0

    def test_environment_detection(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        settings = Settings()

        assert settings.APP_ENV == "production"
        assert not settings.is_development

    def test_get_settings_cached(self) -> None:
        assert get_settings() is get_settings()


class TestEndpointConfig:
    """Tests for endpoint resolution."""

    def test_resolved_from_yaml(self) -> None:
        endpoint = Settings().endpoint_config

        assert endpoint == EndpointConfig(
            base_url="http://localhost:11434/api",
            model="granite3.2-vision",
            timeout=5.0,
            retry_attempts=3,
            retry_delay=0.0,
            retry_client_errors=True,
        )

    def test_legacy_variables_win(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Should honor flat variables, converting milliseconds to seconds."""
        monkeypatch.setenv("OLLAMA__MODEL", "nested-model")
        monkeypatch.setenv("OLLAMA_API_URL", "http://gpu-box:11434/api/")
        monkeypatch.setenv("OLLAMA_MODEL", "llama3.2")
        monkeypatch.setenv("OLLAMA_TIMEOUT_MS", "45000")
        monkeypatch.setenv("OLLAMA_RETRY_ATTEMPTS", "5")
        monkeypatch.setenv("OLLAMA_RETRY_DELAY_MS", "250")

        endpoint = Settings().endpoint_config

        assert endpoint.base_url == "http://gpu-box:11434/api"
        assert endpoint.model == "llama3.2"
        assert endpoint.timeout == 45.0
        assert endpoint.retry_attempts == 5
        assert endpoint.retry_delay == 0.25

    def test_empty_legacy_variable_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OLLAMA_MODEL", "")

        assert Settings().endpoint_config.model == "granite3.2-vision"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"retry_attempts": 0},
            {"timeout": 0},
            {"retry_delay": -1},
            {"model": ""},
            {"stream_connect_timeout": 0},
        ],
    )
    def test_invalid_endpoint_rejected(self, overrides: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            Settings(ollama=overrides).endpoint_config  # noqa: B018

    def test_endpoint_is_immutable(self) -> None:
        endpoint = Settings().endpoint_config

        with pytest.raises(ValidationError):
            endpoint.model = "other"  # type: ignore[misc]
