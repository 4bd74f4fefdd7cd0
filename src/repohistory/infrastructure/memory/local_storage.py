"""In-memory implementation of LocalStorage."""


class InMemoryLocalStorage:
    """Dictionary-backed local storage."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        """Initialize the storage."""
        self._blobs: dict[str, str] = dict(initial or {})

    def load(self, key: str) -> str | None:
        """Load a blob."""
        return self._blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        """Save a blob."""
        self._blobs[key] = blob

    def remove(self, key: str) -> None:
        """Remove a blob."""
        self._blobs.pop(key, None)
