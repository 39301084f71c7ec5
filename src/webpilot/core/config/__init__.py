"""Configuration module with YAML and environment variable support."""

from .settings import EndpointConfig, Settings, get_settings


__all__ = [
    "EndpointConfig",
    "Settings",
    "get_settings",
]
