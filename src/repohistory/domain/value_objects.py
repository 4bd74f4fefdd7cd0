"""Domain value objects and DTOs."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum


class SyncState(StrEnum):
    """Whether a record's identity has been assigned by the remote store."""

    PENDING = "pending"
    CONFIRMED = "confirmed"


class PropagationOperation(StrEnum):
    """Mutations that are folded into the remote store."""

    ADD = "add"
    REMOVE = "remove"
    CLEAR = "clear"


@dataclass(frozen=True)
class RepoInfo:
    """Owner and repository name parsed from a hosted git URL."""

    owner: str
    repo: str

    @property
    def full_name(self) -> str:
        """Return the `owner/repo` form."""
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class PropagationTask:
    """A unit of background work that pushes a local mutation to the remote.

    Tasks sharing a `key` run in submission order. A task with no key is a
    barrier that runs after, and before, everything else.
    """

    operation: PropagationOperation
    key: str | None
    run: Callable[[], Awaitable[None]]
