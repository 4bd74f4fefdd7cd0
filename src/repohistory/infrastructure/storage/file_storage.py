"""File-backed local storage."""

import re
from pathlib import Path

import structlog

from repohistory.domain.errors import CorruptLocalStateError

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class FileLocalStorage:
    """Stores each blob as `<key>.json` inside a directory."""

    def __init__(self, directory: Path) -> None:
        """Initialize the storage."""
        self.directory = directory
        self.log = structlog.get_logger(__name__)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def load(self, key: str) -> str | None:
        """Load a blob, or None if the file does not exist."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            msg = f"{path} is not valid UTF-8"
            raise CorruptLocalStateError(msg) from e

    def save(self, key: str, blob: str) -> None:
        """Write a blob atomically."""
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(blob, encoding="utf-8")
        tmp_path.replace(path)
        self.log.debug("Saved blob", key=key, path=str(path), size=len(blob))

    def remove(self, key: str) -> None:
        """Remove a blob if it exists."""
        self._path(key).unlink(missing_ok=True)
