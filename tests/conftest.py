"""Shared test fixtures."""

import pytest

from formlogic.config import get_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    """Reload settings for every test so environment overrides apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
