"""Shared fixtures for repo-history tests."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from repohistory.application.factories.history_store_factory import (
    create_repository_history_store,
)
from repohistory.application.services.repository_history_store import (
    RepositoryHistoryStore,
)
from repohistory.domain.entities import HistoryRecord
from repohistory.infrastructure.memory import (
    InMemoryLocalStorage,
    InMemoryRemoteHistoryClient,
)

STORAGE_KEY = "mindvex_repository_history"


class FakeClock:
    """Clock that advances one second every time it is read."""

    def __init__(self, start: datetime | None = None) -> None:
        """Initialize the clock."""
        self.now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        """Return the next instant."""
        self.now += timedelta(seconds=1)
        return self.now


class StaticAuth:
    """Auth oracle with a settable answer."""

    def __init__(self, *, authenticated: bool) -> None:
        """Initialize the oracle."""
        self.authenticated = authenticated

    def is_authenticated(self) -> bool:
        """Return the configured answer."""
        return self.authenticated


@pytest.fixture
def clock() -> FakeClock:
    """Create a deterministic clock."""
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryLocalStorage:
    """Create an empty in-memory storage."""
    return InMemoryLocalStorage()


@pytest.fixture
def remote(clock: FakeClock) -> InMemoryRemoteHistoryClient:
    """Create an empty in-memory remote store."""
    return InMemoryRemoteHistoryClient(clock=clock)


@pytest.fixture
def auth() -> StaticAuth:
    """Create an authenticated oracle."""
    return StaticAuth(authenticated=True)


@pytest.fixture
def anonymous() -> StaticAuth:
    """Create an unauthenticated oracle."""
    return StaticAuth(authenticated=False)


@pytest.fixture
def store(
    storage: InMemoryLocalStorage,
    remote: InMemoryRemoteHistoryClient,
    auth: StaticAuth,
    clock: FakeClock,
) -> RepositoryHistoryStore:
    """Create an authenticated store over in-memory collaborators."""
    return create_repository_history_store(
        storage=storage,
        remote=remote,
        auth=auth,
        storage_key=STORAGE_KEY,
        history_cap=50,
        clock=clock,
    )


class GatedRemoteHistoryClient(InMemoryRemoteHistoryClient):
    """In-memory remote whose creates block until the gate opens."""

    def __init__(self, clock: FakeClock) -> None:
        """Initialize the client."""
        super().__init__(clock=clock)
        self.gate = asyncio.Event()
        self.create_calls: list[str] = []

    async def create_record(
        self,
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> HistoryRecord:
        """Record the call, wait for the gate, then create."""
        self.create_calls.append(url)
        await self.gate.wait()
        return await super().create_record(
            url, name, description, branch, commit_hash
        )


@pytest.fixture
def gated_remote(clock: FakeClock) -> GatedRemoteHistoryClient:
    """Create a remote whose creates can be held in flight."""
    return GatedRemoteHistoryClient(clock)


@pytest.fixture
def make_store(
    storage: InMemoryLocalStorage, clock: FakeClock
) -> Callable[..., RepositoryHistoryStore]:
    """Build stores over the shared storage with a chosen remote and oracle."""

    def _make(
        remote: Any, auth: Any, history_cap: int = 50
    ) -> RepositoryHistoryStore:
        return create_repository_history_store(
            storage=storage,
            remote=remote,
            auth=auth,
            storage_key=STORAGE_KEY,
            history_cap=history_cap,
            clock=clock,
        )

    return _make
