"""Bearer token store."""

import structlog

from repohistory.domain.errors import CorruptLocalStateError
from repohistory.domain.protocols import LocalStorage

AUTH_TOKEN_KEY = "authToken"  # noqa: S105


class TokenStore:
    """Holds the bearer token for the remote history store.

    The token is persisted in local storage. A configured token is used when
    nothing has been stored yet.
    """

    def __init__(
        self, storage: LocalStorage, configured_token: str | None = None
    ) -> None:
        """Initialize the token store."""
        self._storage = storage
        self._configured_token = configured_token or None
        self.log = structlog.get_logger(__name__)

    def get_token(self) -> str | None:
        """Return the current token, if any."""
        try:
            stored = self._storage.load(AUTH_TOKEN_KEY)
        except (OSError, CorruptLocalStateError) as e:
            self.log.warning("Failed to read auth token", error=str(e))
            stored = None
        return stored or self._configured_token

    def set_token(self, token: str) -> None:
        """Persist a new token."""
        self._storage.save(AUTH_TOKEN_KEY, token)
        self.log.info("Auth token stored")

    def clear_token(self) -> None:
        """Forget the token, including the configured one."""
        self._configured_token = None
        try:
            self._storage.remove(AUTH_TOKEN_KEY)
        except OSError as e:
            self.log.warning("Failed to remove auth token", error=str(e))
        self.log.info("Auth token cleared")

    def is_authenticated(self) -> bool:
        """Return True if a token is available."""
        return bool(self.get_token())
