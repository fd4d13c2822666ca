"""
Shared fixtures: the sample catalog under ``data/catalog``, a fresh
analytics store and an offline LLM client.
"""

from __future__ import annotations

import pytest

from backend.app.engine.analytics_store import AnalyticsStore
from backend.app.engine.catalog_store import InMemoryCatalogStore
from backend.app.settings import DEFAULT_CATALOG_DIR
from backend.tests.fakes import FakeChatClient


@pytest.fixture
def catalog() -> InMemoryCatalogStore:
    return InMemoryCatalogStore.from_directory(DEFAULT_CATALOG_DIR)


@pytest.fixture
def offline_client() -> FakeChatClient:
    return FakeChatClient(available=False)


@pytest.fixture
def analytics() -> AnalyticsStore:
    return AnalyticsStore()
