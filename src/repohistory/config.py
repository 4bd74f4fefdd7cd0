"""Global configuration for the repo-history project."""

import asyncio
from collections.abc import Callable, Coroutine
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import click
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from repohistory.log import LogFormat

DEFAULT_BASE_DIR = Path.home() / ".repo-history"
DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_STORAGE_KEY = "mindvex_repository_history"
DEFAULT_HISTORY_CAP = 50
DEFAULT_REQUEST_TIMEOUT = 30.0


class AppContext(BaseSettings):
    """Global context for the repo-history project.

    Values are read from the environment and, when present, a `.env` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(default=DEFAULT_BASE_DIR)
    log_level: str = Field(default="INFO")
    log_format: LogFormat = Field(default=LogFormat.PRETTY)
    api_url: str = Field(
        default=DEFAULT_API_URL,
        description="Base URL of the repository-history API",
    )
    auth_token: str | None = Field(
        default=None,
        description="Bearer token used to seed the token store",
    )
    history_cap: int = Field(
        default=DEFAULT_HISTORY_CAP,
        gt=0,
        description="Maximum number of records kept in the history",
    )
    storage_key: str = Field(default=DEFAULT_STORAGE_KEY)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)

    def model_post_init(self, _: Any) -> None:
        """Ensure the data directory exists."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def get_storage_dir(self) -> Path:
        """Get the directory used for persisted blobs."""
        return self.data_dir / "storage"


T = TypeVar("T")


def with_app_context(func: Callable[..., T]) -> Callable[..., T]:
    """Pass the app context stored on the click context as the first argument."""

    @wraps(func)
    @click.pass_obj
    def wrapper(app_context: AppContext, *args: Any, **kwargs: Any) -> T:
        return func(app_context, *args, **kwargs)

    return wrapper


def wrap_async(f: Callable[..., Coroutine[Any, Any, T]]) -> Callable[..., T]:
    """Run an async click command on a fresh event loop."""

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        return asyncio.run(f(*args, **kwargs))

    return wrapper
