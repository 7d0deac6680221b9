"""Pytest configuration and fixtures."""

import os

import pytest

from tutor.core.config import get_settings
from tutor.core.rate_limiter import get_chat_rate_limiter


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["TUTOR_ENV"] = "test"
    os.environ.pop("SUPABASE_SERVICE_ROLE_KEY", None)
    for name in (
        "VERTEX_PROJECT_ID",
        "VERTEX_LOCATION",
        "VERTEX_COLLECTION",
        "VERTEX_ENGINE_ID",
        "VERTEX_SERVING_CONFIG",
        "GOOGLE_APPLICATION_CREDENTIALS_JSON",
        "GOOGLE_APPLICATION_CREDENTIALS",
    ):
        os.environ.pop(name, None)
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def fresh_rate_limiter():
    """Each test starts with full token buckets."""
    get_chat_rate_limiter.cache_clear()
    yield
    get_chat_rate_limiter.cache_clear()
