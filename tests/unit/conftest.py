"""Pytest configuration and fixtures for unit tests."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest

from questlog.core.kv_store import KeyValueStore
from questlog.domain.session import SessionContext, SessionIdentity
from questlog.persistence.local import LocalAdapter
from questlog.services.achievements import AchievementTracker
from questlog.services.task_manager import TaskManager
from tests.unit.mocks import InMemoryRemoteAdapter


@pytest.fixture
def notifier() -> AsyncMock:
    """Notifier collaborator that records every event it is sent."""
    mock = AsyncMock()
    mock.notify = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def local_adapter(kv_store: KeyValueStore) -> LocalAdapter:
    return LocalAdapter(kv_store)


@pytest.fixture
def remote_adapter() -> InMemoryRemoteAdapter:
    """In-memory remote store with the signed-in account's member profile."""
    remote = InMemoryRemoteAdapter(account_id="acct-1")
    remote.seed_member("m-1", "Alice", user_id="acct-1")
    return remote


@pytest.fixture
def remote_context() -> SessionContext:
    return SessionContext(
        identity=SessionIdentity(account_id="acct-1", email="alice@example.com", token="t0k3n"),
        remote_enabled=True,
    )


@pytest.fixture
async def manager(local_adapter: LocalAdapter, notifier: AsyncMock) -> AsyncGenerator[TaskManager, None]:
    """Local-only engine loaded with the default member."""
    engine = TaskManager(
        SessionContext(),
        local=local_adapter,
        notifier=notifier,
        achievements=AchievementTracker(local_adapter.store, notifier),
    )
    await engine.load()
    yield engine
    await engine.dispatcher.stop()


@pytest.fixture
async def remote_manager(
    local_adapter: LocalAdapter,
    remote_adapter: InMemoryRemoteAdapter,
    remote_context: SessionContext,
    notifier: AsyncMock,
) -> AsyncGenerator[TaskManager, None]:
    """Engine signed in to the in-memory remote store."""
    engine = TaskManager(
        remote_context,
        local=local_adapter,
        remote_factory=lambda identity: remote_adapter,
        notifier=notifier,
    )
    await engine.load()
    yield engine
    await engine.dispatcher.stop()
