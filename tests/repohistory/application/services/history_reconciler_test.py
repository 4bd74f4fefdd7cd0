"""Tests for reconciliation with the remote store."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from repohistory.application.services.repository_history_store import (
    RepositoryHistoryStore,
)
from repohistory.domain.entities import HistoryRecord
from repohistory.domain.errors import TransientRemoteError
from repohistory.domain.value_objects import SyncState
from repohistory.infrastructure.memory import InMemoryRemoteHistoryClient


def _confirmed(record_id: str, url: str) -> HistoryRecord:
    return HistoryRecord(
        id=record_id,
        url=url,
        name=url,
        timestamp=datetime(2023, 6, 1, tzinfo=UTC),
        sync_state=SyncState.CONFIRMED,
    )


@pytest.fixture
def mock_remote() -> AsyncMock:
    """Create a mock remote with an empty history."""
    remote = AsyncMock()
    remote.fetch_history.return_value = []
    remote.create_record.return_value = _confirmed("repo_1", "a")
    remote.delete_record.return_value = True
    remote.clear_all.return_value = True
    return remote


@pytest.mark.asyncio
async def test_empty_remote_is_seeded_from_local(
    make_store: Callable[..., RepositoryHistoryStore],
    gated_remote: Any,
    anonymous: Any,
) -> None:
    """Test that local records are pushed one at a time and then re-keyed."""
    store = make_store(gated_remote, anonymous)
    a = store.add_repository("a", "a")
    b = store.add_repository("b", "b")
    anonymous.authenticated = True

    sync = asyncio.create_task(store.initialize())
    await asyncio.sleep(0.01)

    assert store.syncing
    assert gated_remote.create_calls == ["b"]
    assert store.get_repository(a.id) == a
    assert store.get_repository(b.id) == b

    gated_remote.gate.set()
    await sync

    assert gated_remote.create_calls == ["b", "a"]
    assert store.get_repository(a.id) is None
    assert store.get_repository(b.id) is None
    records = store.get_all_repositories()
    assert {r.url for r in records} == {"a", "b"}
    assert all(r.sync_state == SyncState.CONFIRMED for r in records)
    assert {r.id for r in records} == {r.id for r in gated_remote.records}
    assert not store.syncing


@pytest.mark.asyncio
async def test_non_empty_remote_replaces_local(
    make_store: Callable[..., RepositoryHistoryStore],
    clock: Callable[[], datetime],
    anonymous: Any,
) -> None:
    """Test that a non-empty remote history becomes the local history."""
    remote_record = _confirmed("srv1", "c")
    remote = InMemoryRemoteHistoryClient(records=[remote_record], clock=clock)
    store = make_store(remote, anonymous)
    store.add_repository("a", "a")
    anonymous.authenticated = True

    await store.initialize()

    assert store.repository_history == {"srv1": remote_record}
    assert remote.records == [remote_record]


@pytest.mark.asyncio
async def test_unauthenticated_session_stays_local(
    make_store: Callable[..., RepositoryHistoryStore],
    mock_remote: AsyncMock,
    anonymous: Any,
) -> None:
    """Test that no remote call is made without authentication."""
    store = make_store(mock_remote, anonymous)

    await store.initialize()
    record = store.add_repository("a", "a")
    store.remove_repository(record.id)
    store.clear_history()
    await store.drain()

    assert not store.initialized
    mock_remote.fetch_history.assert_not_awaited()
    mock_remote.create_record.assert_not_awaited()
    mock_remote.delete_record.assert_not_awaited()
    mock_remote.clear_all.assert_not_awaited()


@pytest.mark.asyncio
async def test_initialize_runs_once(
    make_store: Callable[..., RepositoryHistoryStore],
    mock_remote: AsyncMock,
    auth: Any,
) -> None:
    """Test that reconciliation happens at most once per session."""
    store = make_store(mock_remote, auth)

    await store.initialize()
    await store.initialize()

    assert store.initialized
    mock_remote.fetch_history.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_fetch_still_marks_initialized(
    make_store: Callable[..., RepositoryHistoryStore],
    mock_remote: AsyncMock,
    auth: Any,
) -> None:
    """Test that a failing sync is not retried and clears the syncing flag."""
    mock_remote.fetch_history.side_effect = TransientRemoteError("offline")
    store = make_store(mock_remote, auth)
    store.add_repository("a", "a")
    await store.drain()

    await store.initialize()
    await store.initialize()

    assert store.initialized
    assert not store.syncing
    mock_remote.fetch_history.assert_awaited_once()
    assert [r.url for r in store.get_all_repositories()] == ["a"]


@pytest.mark.asyncio
async def test_seeding_continues_after_a_failure(
    make_store: Callable[..., RepositoryHistoryStore],
    mock_remote: AsyncMock,
    anonymous: Any,
) -> None:
    """Test that one failing create does not abort the rest of the batch."""
    store = make_store(mock_remote, anonymous)
    a = store.add_repository("a", "a")
    store.add_repository("b", "b")
    anonymous.authenticated = True
    mock_remote.create_record.side_effect = [
        TransientRemoteError("timeout"),
        _confirmed("repo_9", "a"),
    ]

    await store.sync_with_remote()

    assert mock_remote.create_record.await_count == 2
    urls = {call.args[0] for call in mock_remote.create_record.await_args_list}
    assert urls == {"a", "b"}
    assert store.get_repository(a.id) is None
    assert store.get_repository("repo_9") is not None
    pending = [r for r in store.get_all_repositories() if r.is_pending]
    assert [r.url for r in pending] == ["b"]


@pytest.mark.asyncio
async def test_syncing_flag_is_observable(
    make_store: Callable[..., RepositoryHistoryStore],
    mock_remote: AsyncMock,
    auth: Any,
) -> None:
    """Test that listeners see the syncing flag rise and fall."""
    store = make_store(mock_remote, auth)
    listener = MagicMock()
    store.subscribe(listener)

    await store.sync_with_remote()

    assert [c.args[0] for c in listener.on_syncing_change.call_args_list] == [
        True,
        False,
    ]


@pytest.mark.asyncio
async def test_syncing_flag_cleared_on_unexpected_error(
    make_store: Callable[..., RepositoryHistoryStore],
    mock_remote: AsyncMock,
    auth: Any,
) -> None:
    """Test that the syncing flag is released even when sync raises."""
    mock_remote.fetch_history.side_effect = RuntimeError("bug")
    store = make_store(mock_remote, auth)

    with pytest.raises(RuntimeError):
        await store.sync_with_remote()

    assert not store.syncing


@pytest.mark.asyncio
async def test_remove_during_seeding_deletes_seeded_record(
    make_store: Callable[..., RepositoryHistoryStore],
    gated_remote: Any,
    anonymous: Any,
) -> None:
    """Test that a record removed while its seeding create is held stays deleted."""
    store = make_store(gated_remote, anonymous)
    record = store.add_repository("a", "a")
    anonymous.authenticated = True

    sync = asyncio.create_task(store.initialize())
    await asyncio.sleep(0.01)
    assert gated_remote.create_calls == ["a"]

    store.remove_repository(record.id)
    gated_remote.gate.set()
    await sync
    await store.drain()

    assert store.get_all_repositories() == []
    assert gated_remote.records == []


@pytest.mark.asyncio
async def test_confirmed_identities_forgotten_when_url_settles(
    make_store: Callable[..., RepositoryHistoryStore],
    gated_remote: Any,
    auth: Any,
) -> None:
    """Test that identity bookkeeping is dropped once a url has no queued work."""
    store = make_store(gated_remote, auth)
    store.add_repository("a", "a")
    store.add_repository("b", "b")
    gated_remote.gate.set()
    await store.drain()

    assert store._reconciler._confirmed_ids == {}  # noqa: SLF001
    assert {r.id for r in store.get_all_repositories()} == {
        r.id for r in gated_remote.records
    }


@pytest.mark.asyncio
async def test_confirmed_identities_forgotten_after_clear(
    make_store: Callable[..., RepositoryHistoryStore],
    gated_remote: Any,
    auth: Any,
) -> None:
    """Test that a clear barrier drops bookkeeping for settled urls."""
    store = make_store(gated_remote, auth)
    store.add_repository("a", "a")
    store.clear_history()
    gated_remote.gate.set()
    await store.drain()

    assert store._reconciler._confirmed_ids == {}  # noqa: SLF001
    assert gated_remote.records == []
