"""Repository history store used by the UI and the CLI."""

from collections.abc import Callable

import structlog

from repohistory.application.services.history_reconciler import HistoryReconciler
from repohistory.application.services.local_history_cache import LocalHistoryCache
from repohistory.application.services.propagation_queue import PropagationQueue
from repohistory.domain.entities import HistoryRecord
from repohistory.domain.protocols import HistoryListener, RemoteHistoryClient
from repohistory.domain.value_objects import PropagationOperation

DEFAULT_RECENT_LIMIT = 5


class RepositoryHistoryStore:
    """History of imported repositories.

    Reads and mutations are synchronous and always reflect the local cache.
    Mutations are propagated to the remote store in the background when the
    user is authenticated. Create one instance per application and pass it to
    its consumers.
    """

    def __init__(
        self,
        cache: LocalHistoryCache,
        reconciler: HistoryReconciler,
        queue: PropagationQueue,
        remote: RemoteHistoryClient,
    ) -> None:
        """Initialize the store."""
        self._cache = cache
        self._reconciler = reconciler
        self._queue = queue
        self._remote = remote
        self._listeners: list[HistoryListener] = []
        self.log = structlog.get_logger(__name__)
        self._cache.set_on_change(self._notify_history)
        self._reconciler.set_on_syncing_change(self._notify_syncing)

    @property
    def repository_history(self) -> dict[str, HistoryRecord]:
        """Return the identity to record mapping."""
        return self._cache.snapshot()

    @property
    def syncing(self) -> bool:
        """Whether a reconciliation or a propagation is in flight."""
        return self._reconciler.syncing

    @property
    def initialized(self) -> bool:
        """Whether reconciliation has run this session."""
        return self._reconciler.initialized

    def subscribe(self, listener: HistoryListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify_history(self) -> None:
        records = self._cache.list_ordered_by_recency()
        for listener in list(self._listeners):
            try:
                listener.on_history_change(records)
            except Exception as e:  # noqa: BLE001
                self.log.warning("History listener failed", error=str(e))

    def _notify_syncing(self, syncing: bool) -> None:  # noqa: FBT001
        for listener in list(self._listeners):
            try:
                listener.on_syncing_change(syncing)
            except Exception as e:  # noqa: BLE001
                self.log.warning("History listener failed", error=str(e))

    def add_repository(  # noqa: PLR0913
        self,
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> HistoryRecord:
        """Record an imported repository and return its local record."""
        record = self._cache.upsert_by_url(url, name, description, branch, commit_hash)
        self.log.info("Repository added to history", url=url, id=record.id)
        self._reconciler.propagate(PropagationOperation.ADD, record)
        return record

    def remove_repository(self, record_id: str) -> None:
        """Remove a repository from the history. Unknown ids are ignored."""
        removed = self._cache.remove(record_id)
        if removed is None:
            self.log.debug("Repository not in history", id=record_id)
            return
        self.log.info("Repository removed from history", url=removed.url)
        self._reconciler.propagate(PropagationOperation.REMOVE, removed)

    def clear_history(self) -> None:
        """Remove every repository from the history."""
        self._cache.clear()
        self.log.info("Repository history cleared")
        self._reconciler.propagate(PropagationOperation.CLEAR)

    def get_repository(self, record_id: str) -> HistoryRecord | None:
        """Get a repository by identity."""
        return self._cache.get(record_id)

    def get_all_repositories(self) -> list[HistoryRecord]:
        """List repositories, most recently touched first."""
        return self._cache.list_ordered_by_recency()

    def get_recent_repositories(
        self, limit: int = DEFAULT_RECENT_LIMIT
    ) -> list[HistoryRecord]:
        """List the most recently touched repositories."""
        return self._cache.list_recent(limit)

    async def initialize(self) -> None:
        """Reconcile with the remote store once per session."""
        await self._reconciler.initialize()

    async def sync_with_remote(self) -> None:
        """Force a reconciliation with the remote store."""
        await self._reconciler.sync_with_remote()

    async def drain(self) -> None:
        """Wait for queued propagation to finish."""
        await self._queue.drain()

    async def close(self) -> None:
        """Finish queued propagation and release the remote client."""
        await self.drain()
        await self._remote.close()
