"""
Pytest configuration and fixtures for all tests.

Provides shared setup/teardown for logging plus the backend and store
fixtures used across the unit tests.

Copyright (c) 2026 Mothership contributors
License: MIT
"""

from datetime import datetime, timezone

import pytest

from mothership_core.config import MothershipSettings
from mothership_core.logging_service import LoggingService
from mothership_core.store import ConfigStore
from mothership_db.backends import InMemoryBackend


@pytest.fixture(autouse=True)
def reset_logging_service():
    """Reset LoggingService state before each test."""
    LoggingService.reset()
    LoggingService.configure_logging(level="DEBUG", format="json")

    yield

    LoggingService.reset()


@pytest.fixture
def fixed_now():
    return datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def store_settings():
    """Settings with the browser sync quotas and the in-memory backend."""
    return MothershipSettings(backend="memory")


@pytest.fixture
def backend(store_settings):
    """In-memory backend enforcing the same quotas as the settings."""
    return InMemoryBackend(
        max_item_bytes=store_settings.max_item_bytes,
        max_total_bytes=store_settings.max_total_bytes,
        max_items=store_settings.max_items,
    )


@pytest.fixture
def store(backend, store_settings, fixed_now):
    """ConfigStore over the in-memory backend with a fixed clock."""
    return ConfigStore(backend, store_settings, clock=lambda: fixed_now)


@pytest.fixture
def sample_config():
    return {
        "sections": ["Primary", "Secondary", "Tertiary"],
        "links": [
            {"id": "a1", "title": "Docs", "url": "https://docs.example.com", "section": "Primary"},
            {"id": "b2", "title": "Mail", "url": "https://mail.example.com", "section": "Work"},
        ],
        "quotes": ["Stay hungry", "Ship it"],
        "backgrounds": ["https://img.example.com/1.jpg"],
        "search": {"defaultEngine": "google", "engines": []},
    }
