"""Log repository history changes using structlog."""

import structlog

from repohistory.domain.entities import HistoryRecord


class LogHistoryListener:
    """Logs the observable state of the repository history store."""

    def __init__(self) -> None:
        """Initialize the listener."""
        self.log = structlog.get_logger(__name__)

    def on_history_change(self, records: list[HistoryRecord]) -> None:
        """Log the size of the history and how many records await the remote."""
        self.log.debug(
            "Repository history changed",
            count=len(records),
            pending=sum(1 for r in records if r.is_pending),
        )

    def on_syncing_change(self, syncing: bool) -> None:  # noqa: FBT001
        """Log when a reconciliation starts or stops."""
        if syncing:
            self.log.info("Syncing repository history")
        else:
            self.log.info("Repository history sync finished")
