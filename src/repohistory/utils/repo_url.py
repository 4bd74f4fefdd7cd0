"""Helpers for repository URLs and display."""

import re
from datetime import UTC, datetime

from repohistory.domain.value_objects import RepoInfo

GITHUB_URL_PATTERN = re.compile(r"github\.com[/:]([^/]+)/([^/.]+)")
FOLDER_SCHEME = "folder://"

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY


def extract_repo_info(url: str) -> RepoInfo | None:
    """Parse the owner and repository name from a GitHub URL."""
    match = GITHUB_URL_PATTERN.search(url)
    if not match:
        return None
    return RepoInfo(owner=match.group(1), repo=match.group(2).removesuffix(".git"))


def repo_name_from_url(url: str) -> str:
    """Derive a display name for an imported repository or folder."""
    if url.startswith(FOLDER_SCHEME):
        return url.removeprefix(FOLDER_SCHEME).rstrip("/") or url

    info = extract_repo_info(url)
    if info:
        return info.repo

    last = url.rstrip("/").rsplit("/", 1)[-1]
    return last.removesuffix(".git") or url


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_time_ago(timestamp: datetime, now: datetime | None = None) -> str:
    """Describe how long ago a timestamp was, falling back to the date."""
    now = now or datetime.now(UTC)
    seconds = int((now - timestamp).total_seconds())

    if seconds < MINUTE:
        return "Just now"
    if seconds < HOUR:
        return _plural(seconds // MINUTE, "minute")
    if seconds < DAY:
        return _plural(seconds // HOUR, "hour")
    if seconds < WEEK:
        return _plural(seconds // DAY, "day")
    return timestamp.date().isoformat()
