"""HTTP client for the repository-history API."""

from http import HTTPStatus
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from repohistory.domain.entities import ID_PREFIX, HistoryRecord
from repohistory.domain.errors import AuthenticationExpiredError, TransientRemoteError
from repohistory.infrastructure.auth.token_store import TokenStore
from repohistory.infrastructure.mappers.history_mapper import HistoryMapper

HISTORY_PATH = "/api/repository-history"


class HttpRemoteHistoryClient:
    """Talks to the repository-history endpoints with a bearer token.

    Every failure is raised as a `TransientRemoteError`. A 401 response also
    clears the stored token, so the caller falls back to local-only mode.
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client."""
        self._token_store = token_store
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        self._log = structlog.get_logger(__name__)

    async def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> httpx.Response:
        token = self._token_store.get_token()
        if not token:
            msg = "No auth token, cannot reach the repository history API"
            raise AuthenticationExpiredError(msg)

        try:
            response = await self._client.request(
                method,
                path,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                **kwargs,
            )
        except httpx.HTTPError as e:
            msg = f"{method} {path} failed: {e}"
            raise TransientRemoteError(msg) from e

        if response.status_code == HTTPStatus.UNAUTHORIZED:
            self._log.warning("Unauthorized: clearing auth token", path=path)
            self._token_store.clear_token()
            msg = f"{method} {path} was rejected as unauthorized"
            raise AuthenticationExpiredError(msg)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_error:
            msg = f"Failed to {action}: {response.status_code}"
            raise TransientRemoteError(msg)

    async def fetch_history(self, limit: int | None = None) -> list[HistoryRecord]:
        """Fetch the user's repository history."""
        params = {"limit": limit} if limit else None
        response = await self._request("GET", HISTORY_PATH, params=params)
        self._raise_for_status(response, "fetch repository history")
        try:
            return [HistoryMapper.from_api(item) for item in response.json()]
        except (ValueError, TypeError, ValidationError) as e:
            msg = f"Unexpected repository history payload: {e}"
            raise TransientRemoteError(msg) from e

    async def create_record(
        self,
        url: str,
        name: str,
        description: str | None = None,
        branch: str | None = None,
        commit_hash: str | None = None,
    ) -> HistoryRecord:
        """Add a repository to the remote history."""
        body = HistoryMapper.to_api_request(
            url, name, description, branch, commit_hash
        )
        response = await self._request("POST", HISTORY_PATH, json=body)
        self._raise_for_status(response, "add repository to history")
        try:
            return HistoryMapper.from_api(response.json())
        except (ValueError, TypeError, ValidationError) as e:
            msg = f"Unexpected repository history payload: {e}"
            raise TransientRemoteError(msg) from e

    async def delete_record(self, record_id: str) -> bool:
        """Delete a record. Returns False if the remote did not know it."""
        server_id = record_id.removeprefix(ID_PREFIX)
        response = await self._request("DELETE", f"{HISTORY_PATH}/{server_id}")
        if response.status_code == HTTPStatus.NOT_FOUND:
            return False
        self._raise_for_status(response, "remove repository from history")
        return True

    async def clear_all(self) -> bool:
        """Clear the remote history."""
        response = await self._request("DELETE", HISTORY_PATH)
        self._raise_for_status(response, "clear repository history")
        return True

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
