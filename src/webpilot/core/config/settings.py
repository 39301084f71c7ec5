"""Application configuration using Pydantic Settings with YAML support.

Configuration is merged from (highest priority first):
1. Values passed to ``Settings()``
2. Flat legacy variables (``OLLAMA_API_URL``, ``OLLAMA_MODEL``, ...)
3. Environment variables, nested with ``__`` (``OLLAMA__MODEL``)
4. ``.env`` file
5. ``config/environments/{APP_ENV}/*.yaml`` over ``config/base/*.yaml``
6. Defaults in code
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_source import MultiYamlConfigSettingsSource


if TYPE_CHECKING:
    from pydantic_settings import PydanticBaseSettingsSource


# =============================================================================
# Nested Configuration Models (from YAML)
# =============================================================================


class AppSettings(BaseModel):
    """Application identity settings."""

    name: str = "WebPilot"
    version: str = "0.1.0"


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "json"
    file: str | None = None


class OllamaSettings(BaseModel):
    """Ollama endpoint configuration (times in seconds)."""

    url: str = "http://localhost:11434/api"
    model: str = "granite3.2-vision"
    timeout: float = 30.0
    retry_attempts: int = 3
    retry_delay: float = 1.0
    retry_client_errors: bool = True
    stream_connect_timeout: float | None = None


class AssistantSettings(BaseModel):
    """Query orchestration settings."""

    response_format: str | None = "json"
    temperature: float | None = None


class EndpointConfig(BaseModel):
    """Immutable description of the model service endpoint.

    Shared read-only by the single-shot and streaming transports.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    timeout: float = Field(..., gt=0, description="Per-attempt deadline in seconds")
    retry_attempts: int = Field(..., ge=1, description="Total attempts, not retries")
    retry_delay: float = Field(..., ge=0, description="Pause between attempts")
    retry_client_errors: bool = True
    stream_connect_timeout: float | None = Field(default=None, gt=0)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Application settings with YAML + environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=False,
        env_nested_delimiter="__",
    )

    APP_ENV: str = "development"

    app: AppSettings = AppSettings()
    logging: LoggingSettings = LoggingSettings()
    ollama: OllamaSettings = OllamaSettings()
    assistant: AssistantSettings = AssistantSettings()

    # Flat variables kept from the desktop application's .env files
    OLLAMA_API_URL: str | None = None
    OLLAMA_MODEL: str | None = None
    OLLAMA_TIMEOUT_MS: int | None = None
    OLLAMA_RETRY_ATTEMPTS: int | None = None
    OLLAMA_RETRY_DELAY_MS: int | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            MultiYamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # =========================================================================
    # Computed Fields
    # =========================================================================

    @property
    def endpoint_config(self) -> EndpointConfig:
        """Resolve the endpoint, letting flat legacy variables win."""
        ollama = self.ollama
        timeout = ollama.timeout
        if self.OLLAMA_TIMEOUT_MS is not None:
            timeout = self.OLLAMA_TIMEOUT_MS / 1000
        retry_delay = ollama.retry_delay
        if self.OLLAMA_RETRY_DELAY_MS is not None:
            retry_delay = self.OLLAMA_RETRY_DELAY_MS / 1000

        return EndpointConfig(
            base_url=(self.OLLAMA_API_URL or ollama.url).rstrip("/"),
            model=self.OLLAMA_MODEL or ollama.model,
            timeout=timeout,
            retry_attempts=(
                self.OLLAMA_RETRY_ATTEMPTS
                if self.OLLAMA_RETRY_ATTEMPTS is not None
                else ollama.retry_attempts
            ),
            retry_delay=retry_delay,
            retry_client_errors=ollama.retry_client_errors,
            stream_connect_timeout=ollama.stream_connect_timeout,
        )

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.APP_ENV == "development"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()
