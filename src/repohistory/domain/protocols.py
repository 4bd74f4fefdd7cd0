"""Collaborator interfaces consumed by the repository history."""

from typing import Protocol

from repohistory.domain.entities import HistoryRecord


class AuthOracle(Protocol):
    """Tells whether requests to the remote store can be authenticated."""

    def is_authenticated(self) -> bool:
        """Return True if a bearer token is available."""
        ...


class RemoteHistoryClient(Protocol):
    """Client for the authoritative remote history store.

    Implementations raise `TransientRemoteError` when the store cannot be
    reached.
    """

    async def fetch_history(self, limit: int | None = None) -> list[HistoryRecord]:
        """Fetch the full remote history."""
        ...

    async def create_record(
        self,
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> HistoryRecord:
        """Create a record, or touch it if the url is already known."""
        ...

    async def delete_record(self, record_id: str) -> bool:
        """Delete a record by its identity."""
        ...

    async def clear_all(self) -> bool:
        """Delete every record."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


class LocalStorage(Protocol):
    """Durable key/value storage for serialized blobs."""

    def load(self, key: str) -> str | None:
        """Load a blob, or None if nothing is stored under the key."""
        ...

    def save(self, key: str, blob: str) -> None:
        """Store a blob under the key."""
        ...

    def remove(self, key: str) -> None:
        """Remove the blob stored under the key."""
        ...


class HistoryListener(Protocol):
    """Observer of the store's observable state."""

    def on_history_change(self, records: list[HistoryRecord]) -> None:
        """Receive the recency-ordered records after a change."""
        ...

    def on_syncing_change(self, syncing: bool) -> None:  # noqa: FBT001
        """Receive the new value of the syncing flag."""
        ...
