"""Capacity governor for the repository history."""

from collections.abc import Iterable

from repohistory.domain.entities import HistoryRecord


def order_by_recency(records: Iterable[HistoryRecord]) -> list[HistoryRecord]:
    """Order records newest first, breaking timestamp ties by identity."""
    return sorted(records, key=lambda r: (r.timestamp, r.id), reverse=True)


class CapacityGovernor:
    """Decides which records fall outside the retained window."""

    def __init__(self, cap: int) -> None:
        """Initialize the governor."""
        if cap < 1:
            msg = f"History cap must be positive, got {cap}"
            raise ValueError(msg)
        self.cap = cap

    def overflow(self, records: Iterable[HistoryRecord]) -> list[HistoryRecord]:
        """Return the least recently touched records beyond the cap."""
        return order_by_recency(records)[self.cap :]
