"""Shared test fixtures and configuration for the WebPilot core tests."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from webpilot.core.config import get_settings
from webpilot.observability.logging import clear_context


# Selects config/environments/test before any settings are loaded
os.environ.setdefault("APP_ENV", "test")

BASE_URL = "http://localhost:11434/api"
MODEL = "granite3.2-vision"


@pytest.fixture(autouse=True)
def _reset_process_state() -> Iterator[None]:
    """Drop cached settings and bound log context between tests."""
    get_settings.cache_clear()
    clear_context()
    yield
    get_settings.cache_clear()
    clear_context()


@pytest.fixture
def base_url() -> str:
    return BASE_URL


@pytest.fixture
def model() -> str:
    return MODEL
