"""In-memory implementation of RemoteHistoryClient."""

import itertools
from collections.abc import Callable
from datetime import UTC, datetime

from repohistory.domain.entities import HistoryRecord
from repohistory.domain.errors import TransientRemoteError
from repohistory.domain.value_objects import SyncState


class InMemoryRemoteHistoryClient:
    """Simulates the remote history store.

    Set `available` to False to make every call fail as if the network were
    down.
    """

    def __init__(
        self,
        records: list[HistoryRecord] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the client."""
        self._records: dict[str, HistoryRecord] = {r.id: r for r in records or []}
        self._ids = itertools.count(1)
        self._clock = clock or (lambda: datetime.now(UTC))
        self.available = True
        self.closed = False

    def _check_available(self) -> None:
        if not self.available:
            msg = "Remote history store is unavailable"
            raise TransientRemoteError(msg)

    @property
    def records(self) -> list[HistoryRecord]:
        """Return a copy of the stored records."""
        return list(self._records.values())

    async def fetch_history(self, limit: int | None = None) -> list[HistoryRecord]:
        """Return records most recently accessed first."""
        self._check_available()
        records = sorted(
            self._records.values(), key=lambda r: r.timestamp, reverse=True
        )
        return records[:limit] if limit else records

    async def create_record(
        self,
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> HistoryRecord:
        """Create a record, or touch the existing one for the url."""
        self._check_available()
        existing = next((r for r in self._records.values() if r.url == url), None)
        if existing:
            touched = existing.touch(self._clock(), description, branch, commit_hash)
            self._records[touched.id] = touched
            return touched

        record = HistoryRecord(
            id=HistoryRecord.remote_id(next(self._ids)),
            url=url,
            name=name,
            description=description or "",
            timestamp=self._clock(),
            branch=branch,
            commit_hash=commit_hash,
            sync_state=SyncState.CONFIRMED,
        )
        self._records[record.id] = record
        return record

    async def delete_record(self, record_id: str) -> bool:
        """Delete a record."""
        self._check_available()
        return self._records.pop(record_id, None) is not None

    async def clear_all(self) -> bool:
        """Delete every record."""
        self._check_available()
        self._records.clear()
        return True

    async def close(self) -> None:
        """Mark the client closed."""
        self.closed = True
