"""Shared test fixtures for pytest.

ENVIRONMENT is forced to ``test`` before the application is imported so
settings load from defaults without needing a .env file.
"""

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient


os.environ["ENVIRONMENT"] = "test"

from core.config import get_overlay_settings, get_settings
from core.ratelimit import get_ratelimiter
from main import app


@pytest.fixture(autouse=True)
def reset_cached_state() -> Generator[None, None, None]:
    """Give every test fresh rate-limit windows and freshly read settings."""
    get_ratelimiter.cache_clear()
    get_overlay_settings.cache_clear()
    yield
    app.dependency_overrides.clear()
    get_ratelimiter.cache_clear()
    get_settings.cache_clear()
    get_overlay_settings.cache_clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client
