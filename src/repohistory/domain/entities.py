"""Pure domain entities using Pydantic."""

import secrets
import string
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from repohistory.domain.value_objects import SyncState

PROVISIONAL_ID_ALPHABET = string.digits + string.ascii_lowercase
PROVISIONAL_ID_SUFFIX_LENGTH = 9
ID_PREFIX = "repo_"


class HistoryRecord(BaseModel):
    """A repository the user has imported.

    Records created locally carry a provisional identity and are `pending`
    until the remote store assigns them an identity, at which point they are
    re-keyed and become `confirmed`.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str  # Deduplication key
    name: str
    description: str = ""
    timestamp: datetime  # Last touched
    branch: str | None = None
    commit_hash: str | None = Field(default=None, alias="commitHash")
    sync_state: SyncState = Field(default=SyncState.PENDING, alias="syncState")

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @staticmethod
    def create(  # noqa: PLR0913
        url: str,
        name: str,
        now: datetime,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> "HistoryRecord":
        """Create a record with a fresh provisional identity."""
        return HistoryRecord(
            id=HistoryRecord.create_provisional_id(now),
            url=url,
            name=name,
            description=description or f"Repository: {name}",
            timestamp=now,
            branch=branch,
            commit_hash=commit_hash,
            sync_state=SyncState.PENDING,
        )

    @staticmethod
    def create_provisional_id(now: datetime) -> str:
        """Create a provisional identity from a timestamp and a random suffix."""
        millis = int(now.timestamp() * 1000)
        suffix = "".join(
            secrets.choice(PROVISIONAL_ID_ALPHABET)
            for _ in range(PROVISIONAL_ID_SUFFIX_LENGTH)
        )
        return f"{ID_PREFIX}{millis}_{suffix}"

    @staticmethod
    def remote_id(server_id: int | str) -> str:
        """Build the local identity for a server-assigned id."""
        return f"{ID_PREFIX}{server_id}"

    @property
    def server_id(self) -> str:
        """Return the identity as the remote store knows it."""
        return self.id.removeprefix(ID_PREFIX)

    @property
    def is_pending(self) -> bool:
        """Whether the remote store has not yet assigned an identity."""
        return self.sync_state == SyncState.PENDING

    def touch(
        self,
        now: datetime,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> "HistoryRecord":
        """Return a copy refreshed by a repeated import.

        Optional fields are only replaced when a new value is given, and the
        timestamp never moves backwards.
        """
        return self.model_copy(
            update={
                "timestamp": max(now, self.timestamp),
                "description": description or self.description,
                "branch": branch if branch is not None else self.branch,
                "commit_hash": (
                    commit_hash if commit_hash is not None else self.commit_hash
                ),
            }
        )

    def confirm(self, confirmed_id: str) -> "HistoryRecord":
        """Return a copy carrying the remote identity."""
        return self.model_copy(
            update={"id": confirmed_id, "sync_state": SyncState.CONFIRMED}
        )
