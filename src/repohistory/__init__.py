"""Local-first repository import history."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("repo-history")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
