"""Factory for the repository history store."""

from collections.abc import Callable
from datetime import datetime

from repohistory.application.services.history_reconciler import HistoryReconciler
from repohistory.application.services.local_history_cache import (
    LocalHistoryCache,
    utcnow,
)
from repohistory.application.services.propagation_queue import PropagationQueue
from repohistory.application.services.repository_history_store import (
    RepositoryHistoryStore,
)
from repohistory.config import AppContext
from repohistory.domain.protocols import AuthOracle, LocalStorage, RemoteHistoryClient
from repohistory.domain.services.capacity_governor import CapacityGovernor
from repohistory.infrastructure.api.history_client import HttpRemoteHistoryClient
from repohistory.infrastructure.auth.token_store import TokenStore
from repohistory.infrastructure.storage.file_storage import FileLocalStorage


def create_repository_history_store(  # noqa: PLR0913
    storage: LocalStorage,
    remote: RemoteHistoryClient,
    auth: AuthOracle,
    storage_key: str,
    history_cap: int,
    clock: Callable[[], datetime] = utcnow,
) -> RepositoryHistoryStore:
    """Wire a store from its collaborators."""
    queue = PropagationQueue()
    cache = LocalHistoryCache(
        storage=storage,
        storage_key=storage_key,
        governor=CapacityGovernor(history_cap),
        clock=clock,
    )
    reconciler = HistoryReconciler(cache=cache, remote=remote, auth=auth, queue=queue)
    return RepositoryHistoryStore(
        cache=cache, reconciler=reconciler, queue=queue, remote=remote
    )


def create_token_store(app_context: AppContext) -> TokenStore:
    """Create the token store backed by the app's storage directory."""
    return TokenStore(
        FileLocalStorage(app_context.get_storage_dir()), app_context.auth_token
    )


def create_store_from_context(app_context: AppContext) -> RepositoryHistoryStore:
    """Create a store talking to the configured API and local data dir."""
    storage = FileLocalStorage(app_context.get_storage_dir())
    token_store = TokenStore(storage, app_context.auth_token)
    remote = HttpRemoteHistoryClient(
        base_url=app_context.api_url,
        token_store=token_store,
        timeout=app_context.request_timeout,
    )
    return create_repository_history_store(
        storage=storage,
        remote=remote,
        auth=token_store,
        storage_key=app_context.storage_key,
        history_cap=app_context.history_cap,
    )
