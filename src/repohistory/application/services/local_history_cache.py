"""In-memory history cache mirrored to local storage."""

from collections.abc import Callable, Iterable
from datetime import UTC, datetime

import structlog

from repohistory.domain.entities import HistoryRecord
from repohistory.domain.errors import CorruptLocalStateError
from repohistory.domain.protocols import LocalStorage
from repohistory.domain.services.capacity_governor import (
    CapacityGovernor,
    order_by_recency,
)
from repohistory.infrastructure.mappers.history_mapper import HistoryMapper


def utcnow() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(UTC)


class LocalHistoryCache:
    """Map of identity to record, kept at most one record per url.

    All methods are synchronous. Every mutation ends by writing the full
    record set to local storage; storage failures are logged, never raised.
    """

    def __init__(  # noqa: PLR0913
        self,
        storage: LocalStorage,
        storage_key: str,
        governor: CapacityGovernor,
        clock: Callable[[], datetime] = utcnow,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the cache and load persisted records."""
        self._storage = storage
        self._storage_key = storage_key
        self._governor = governor
        self._clock = clock
        self._on_change = on_change
        self._records: dict[str, HistoryRecord] = {}
        self.log = structlog.get_logger(__name__)
        self._load()

    def set_on_change(self, on_change: Callable[[], None] | None) -> None:
        """Set the callback invoked after each persisted mutation."""
        self._on_change = on_change

    def _load(self) -> None:
        try:
            blob = self._storage.load(self._storage_key)
            if blob is None:
                return
            records = HistoryMapper.from_blob(blob)
        except CorruptLocalStateError as e:
            self.log.error(  # noqa: TRY400
                "Failed to load repository history from storage", error=str(e)
            )
            self._records = {}
            return
        except Exception as e:  # noqa: BLE001
            self.log.exception("Failed to read repository history", error=e)
            self._records = {}
            return

        self._records = self._deduplicate(records)
        self._evict()
        self.log.debug("Loaded repository history", count=len(self._records))

    @staticmethod
    def _deduplicate(records: Iterable[HistoryRecord]) -> dict[str, HistoryRecord]:
        """Keep the most recently touched record for each url."""
        seen: set[str] = set()
        result: dict[str, HistoryRecord] = {}
        for record in order_by_recency(records):
            if record.url in seen:
                continue
            seen.add(record.url)
            result[record.id] = record
        return result

    def _evict(self) -> None:
        overflow = self._governor.overflow(self._records.values())
        for record in overflow:
            del self._records[record.id]
        if overflow:
            self.log.debug(
                "Evicted least recently used repositories",
                count=len(overflow),
                cap=self._governor.cap,
            )

    def _persist(self) -> None:
        try:
            self._storage.save(
                self._storage_key, HistoryMapper.to_blob(list(self._records.values()))
            )
        except Exception as e:  # noqa: BLE001
            self.log.exception("Failed to persist repository history", error=e)
        if self._on_change:
            self._on_change()

    def __len__(self) -> int:
        """Return the number of records."""
        return len(self._records)

    def snapshot(self) -> dict[str, HistoryRecord]:
        """Return a copy of the identity to record mapping."""
        return dict(self._records)

    def get(self, record_id: str) -> HistoryRecord | None:
        """Get a record by identity."""
        return self._records.get(record_id)

    def find_by_url(self, url: str) -> HistoryRecord | None:
        """Get the record for a url."""
        return next((r for r in self._records.values() if r.url == url), None)

    def list_ordered_by_recency(self) -> list[HistoryRecord]:
        """List records, most recently touched first."""
        return order_by_recency(self._records.values())

    def list_recent(self, limit: int) -> list[HistoryRecord]:
        """List the most recently touched records."""
        return self.list_ordered_by_recency()[: max(limit, 0)]

    def upsert_by_url(  # noqa: PLR0913
        self,
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> HistoryRecord:
        """Touch the record for a url, creating it if needed."""
        now = self._clock()
        existing = self.find_by_url(url)
        if existing:
            record = existing.touch(now, description, branch, commit_hash)
            self._records[record.id] = record
        else:
            record = HistoryRecord.create(
                url, name, now, description, branch, commit_hash
            )
            self._records[record.id] = record
            self._evict()
        self._persist()
        return record

    def remove(self, record_id: str) -> HistoryRecord | None:
        """Remove a record. Removing an unknown identity is a no-op."""
        removed = self._records.pop(record_id, None)
        self._persist()
        return removed

    def clear(self) -> None:
        """Remove every record."""
        self._records = {}
        self._persist()

    def replace_all(self, records: Iterable[HistoryRecord]) -> None:
        """Replace the whole cache with the given records."""
        self._records = self._deduplicate(records)
        self._evict()
        self._persist()

    def rekey(self, provisional_id: str, confirmed_id: str) -> HistoryRecord | None:
        """Move a record from its provisional identity to a confirmed one.

        Returns None if the provisional identity no longer resolves, for
        example because the record was removed while the request was in flight.
        """
        current = self._records.pop(provisional_id, None)
        if current is None:
            return None
        confirmed = current.confirm(confirmed_id)
        self._records[confirmed_id] = confirmed
        self._persist()
        self.log.debug(
            "Re-keyed repository",
            url=confirmed.url,
            provisional_id=provisional_id,
            confirmed_id=confirmed_id,
        )
        return confirmed
