"""Mappers for history records."""

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from repohistory.domain.entities import HistoryRecord
from repohistory.domain.errors import CorruptLocalStateError
from repohistory.domain.value_objects import SyncState

_RECORD_LIST = TypeAdapter(list[HistoryRecord])


class RepositoryHistoryApiItem(BaseModel):
    """A history item as returned by the repository-history API."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    url: str
    name: str
    description: str | None = None
    branch: str | None = None
    commit_hash: str | None = Field(default=None, alias="commitHash")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    last_accessed_at: datetime = Field(alias="lastAccessedAt")


class HistoryMapper:
    """Maps history records to and from their serialized forms."""

    @staticmethod
    def to_blob(records: list[HistoryRecord]) -> str:
        """Serialize records to the persisted JSON array."""
        return _RECORD_LIST.dump_json(records, by_alias=True).decode()

    @staticmethod
    def from_blob(blob: str) -> list[HistoryRecord]:
        """Deserialize the persisted JSON array."""
        try:
            return _RECORD_LIST.validate_json(blob)
        except ValidationError as e:
            msg = f"Malformed repository history blob: {e}"
            raise CorruptLocalStateError(msg) from e

    @staticmethod
    def from_api(payload: dict[str, Any]) -> HistoryRecord:
        """Convert an API item to a confirmed record."""
        item = RepositoryHistoryApiItem.model_validate(payload)
        return HistoryRecord(
            id=HistoryRecord.remote_id(item.id),
            url=item.url,
            name=item.name,
            description=item.description or "",
            timestamp=item.last_accessed_at,
            branch=item.branch,
            commit_hash=item.commit_hash,
            sync_state=SyncState.CONFIRMED,
        )

    @staticmethod
    def to_api_request(  # noqa: PLR0913
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> dict[str, str]:
        """Build the JSON body for creating a record, omitting absent fields."""
        body = {"url": url, "name": name}
        optional = {
            "description": description,
            "branch": branch,
            "commitHash": commit_hash,
        }
        body.update({k: v for k, v in optional.items() if v is not None})
        return body


def dumps_pretty(records: list[HistoryRecord]) -> str:
    """Render records as indented JSON for display."""
    return json.dumps(
        [r.model_dump(mode="json", by_alias=True) for r in records], indent=2
    )
