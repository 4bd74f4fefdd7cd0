"""Errors raised inside the repository history."""


class RepositoryHistoryError(Exception):
    """Base class for repository history errors."""


class TransientRemoteError(RepositoryHistoryError):
    """The remote history store could not be reached or refused a request."""


class AuthenticationExpiredError(TransientRemoteError):
    """The remote store rejected the bearer token."""


class CorruptLocalStateError(RepositoryHistoryError):
    """The persisted history blob could not be decoded."""
