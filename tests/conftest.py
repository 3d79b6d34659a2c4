"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import AsyncGenerator

import pytest

from questlog.core.kv_store import KeyValueStore


logger = logging.getLogger(__name__)


@pytest.fixture
async def kv_store(tmp_path) -> AsyncGenerator[KeyValueStore, None]:
    """Key-value store backed by a throwaway SQLite file."""
    store = KeyValueStore(tmp_path / "questlog.sqlite3")
    yield store
    await store.close()
