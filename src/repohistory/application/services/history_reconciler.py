"""Reconciliation of the local history with the remote store."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import partial

import structlog

from repohistory.application.services.local_history_cache import LocalHistoryCache
from repohistory.application.services.propagation_queue import PropagationQueue
from repohistory.domain.entities import HistoryRecord
from repohistory.domain.errors import TransientRemoteError
from repohistory.domain.protocols import AuthOracle, RemoteHistoryClient
from repohistory.domain.value_objects import PropagationOperation, PropagationTask


class HistoryReconciler:
    """Keeps the local cache and the remote store consistent.

    Reconciliation runs at most once per session. After that, each local
    mutation is folded into the remote store in the background; failures are
    logged and the local state stays authoritative for the session.
    """

    def __init__(
        self,
        cache: LocalHistoryCache,
        remote: RemoteHistoryClient,
        auth: AuthOracle,
        queue: PropagationQueue,
        on_syncing_change: Callable[[bool], None] | None = None,
    ) -> None:
        """Initialize the reconciler."""
        self._cache = cache
        self._remote = remote
        self._auth = auth
        self._queue = queue
        self._on_syncing_change = on_syncing_change
        self._reconciling = False
        self._reported_syncing = False
        # url -> provisional identity -> identity assigned by the remote store.
        # Kept only while tasks for the url are queued.
        self._confirmed_ids: dict[str, dict[str, str]] = {}
        self.initialized = False
        self.log = structlog.get_logger(__name__)
        self._queue.set_on_busy_change(lambda _busy: self._refresh_syncing())
        self._queue.set_on_key_idle(self._forget_confirmed)

    @property
    def syncing(self) -> bool:
        """Whether a reconciliation or a propagation is in flight."""
        return self._reconciling or self._queue.pending > 0

    def set_on_syncing_change(self, callback: Callable[[bool], None] | None) -> None:
        """Set the callback invoked when the syncing flag flips."""
        self._on_syncing_change = callback

    def _refresh_syncing(self) -> None:
        syncing = self.syncing
        if syncing == self._reported_syncing:
            return
        self._reported_syncing = syncing
        if self._on_syncing_change:
            self._on_syncing_change(syncing)

    @asynccontextmanager
    async def _syncing_scope(self) -> AsyncIterator[None]:
        self._reconciling = True
        self._refresh_syncing()
        try:
            yield
        finally:
            self._reconciling = False
            self._refresh_syncing()

    async def initialize(self) -> None:
        """Reconcile with the remote store once, if authenticated."""
        if self.initialized:
            return
        if not self._auth.is_authenticated():
            self.log.debug("Not authenticated, using local repository history only")
            return

        # Set before the network call so a failing sync is not retried
        self.initialized = True
        await self.sync_with_remote()

    async def sync_with_remote(self) -> None:
        """Synchronize the local cache with the remote store.

        A non-empty remote history replaces the local one. An empty remote
        history is seeded from the local records, one at a time, through the
        propagation queue so later mutations of a seeded url wait for it.
        """
        async with self._syncing_scope():
            try:
                remote_records = await self._remote.fetch_history()
            except TransientRemoteError as e:
                self.log.warning(
                    "Failed to fetch repository history from remote", error=str(e)
                )
                return

            if remote_records:
                self._adopt_remote(remote_records)
                return

            local_records = self._cache.list_ordered_by_recency()
            if not local_records:
                self.log.debug("Local and remote repository history are empty")
                return

            self.log.info(
                "Seeding remote repository history", count=len(local_records)
            )
            for record in local_records:
                job = self._queue.submit(
                    PropagationTask(
                        PropagationOperation.ADD,
                        record.url,
                        partial(self._seed_remote, record),
                    )
                )
                if job is not None:
                    await job

    def _adopt_remote(self, remote_records: list[HistoryRecord]) -> None:
        remote_urls = {r.url for r in remote_records}
        discarded = [
            r.url
            for r in self._cache.list_ordered_by_recency()
            if r.is_pending and r.url not in remote_urls
        ]
        if discarded:
            self.log.warning(
                "Discarding local-only repositories in favour of remote history",
                urls=discarded,
            )
        self._cache.replace_all(remote_records)
        self.log.info(
            "Loaded repository history from remote", count=len(remote_records)
        )

    def _forget_confirmed(self, url: str | None) -> None:
        if url is not None:
            self._confirmed_ids.pop(url, None)
            return
        for known_url in list(self._confirmed_ids):
            if not self._queue.has_pending(known_url):
                del self._confirmed_ids[known_url]

    def _resolve(self, record: HistoryRecord) -> str:
        """Follow a provisional identity to its latest confirmed identity."""
        confirmed = self._confirmed_ids.get(record.url, {})
        record_id = record.id
        while record_id in confirmed:
            confirmed_id = confirmed[record_id]
            if confirmed_id == record_id:
                break
            record_id = confirmed_id
        return record_id

    async def _create_remote(self, record: HistoryRecord) -> None:
        created = await self._remote.create_record(
            record.url,
            record.name,
            record.description,
            record.branch,
            record.commit_hash,
        )
        current_id = self._resolve(record)
        confirmed = self._confirmed_ids.setdefault(record.url, {})
        for known_id in {record.id, current_id} - {created.id}:
            confirmed[known_id] = created.id

        local = self._cache.get(current_id)
        if local is None:
            self.log.debug(
                "Repository no longer in local history, not re-keying", url=record.url
            )
            return
        if local.is_pending or local.id != created.id:
            self._cache.rekey(current_id, created.id)

    async def _seed_remote(self, record: HistoryRecord) -> None:
        try:
            await self._create_remote(record)
        except TransientRemoteError as e:
            self.log.warning(
                "Failed to sync repository to remote", url=record.url, error=str(e)
            )

    async def _delete_remote(self, record: HistoryRecord) -> None:
        record_id = self._resolve(record)
        if record_id == record.id and record.is_pending:
            self.log.debug(
                "Repository never reached the remote, nothing to delete",
                url=record.url,
            )
            return
        if not await self._remote.delete_record(record_id):
            self.log.debug("Repository already absent from remote", id=record_id)

    async def _clear_remote(self) -> None:
        await self._remote.clear_all()

    def propagate(
        self,
        operation: PropagationOperation,
        record: HistoryRecord | None = None,
    ) -> None:
        """Queue a local mutation for the remote store, if authenticated."""
        if not self._auth.is_authenticated():
            return

        if operation == PropagationOperation.CLEAR:
            task = PropagationTask(operation, None, self._clear_remote)
        elif record is None:
            msg = f"{operation} propagation requires a record"
            raise ValueError(msg)
        elif operation == PropagationOperation.ADD:
            task = PropagationTask(
                operation, record.url, partial(self._create_remote, record)
            )
        else:
            task = PropagationTask(
                operation, record.url, partial(self._delete_remote, record)
            )
        self._queue.submit(task)
