"""In-memory implementations for testing and development."""

from .history_client import InMemoryRemoteHistoryClient
from .local_storage import InMemoryLocalStorage

__all__ = ["InMemoryLocalStorage", "InMemoryRemoteHistoryClient"]
