"""Command line interface for repo-history."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import click

from repohistory import __version__
from repohistory.application.factories.history_store_factory import (
    create_store_from_context,
    create_token_store,
)
from repohistory.application.services.repository_history_store import (
    RepositoryHistoryStore,
)
from repohistory.config import AppContext, with_app_context, wrap_async
from repohistory.domain.entities import HistoryRecord
from repohistory.infrastructure.mappers.history_mapper import dumps_pretty
from repohistory.infrastructure.reporting.log_history_listener import (
    LogHistoryListener,
)
from repohistory.log import configure_logging
from repohistory.utils.repo_url import format_time_ago, repo_name_from_url


@asynccontextmanager
async def open_store(
    app_context: AppContext, *, initialize: bool = True
) -> AsyncIterator[RepositoryHistoryStore]:
    """Open the store for one CLI session and flush propagation on exit."""
    store = create_store_from_context(app_context)
    store.subscribe(LogHistoryListener())
    if initialize:
        await store.initialize()
    try:
        yield store
    finally:
        await store.close()


def _format_record(record: HistoryRecord) -> str:
    parts = [record.id, record.name, record.url]
    if record.branch:
        parts.append(f"[{record.branch}]")
    parts.append(format_time_ago(record.timestamp))
    if record.is_pending:
        parts.append("(not synced)")
    return "  ".join(parts)


@click.group(context_settings={"max_content_width": 100})
@click.option(
    "--env-file",
    help="Path to a .env file [default: .env]",
    type=click.Path(
        exists=True,
        dir_okay=False,
        resolve_path=True,
        path_type=Path,
    ),
)
@click.pass_context
def cli(
    ctx: click.Context,
    env_file: Path | None,
) -> None:
    """repo-history CLI - History of imported repositories."""  # noqa: D403
    config = AppContext()
    if env_file:
        config = AppContext(_env_file=env_file)  # type: ignore[call-arg]

    configure_logging(config)
    ctx.obj = config


@cli.command()
@click.argument("url")
@click.option("--name", help="Display name [default: derived from the URL]")
@click.option("--description", help="Description of the repository")
@click.option("--branch", help="Branch that was imported")
@click.option("--commit", "commit_hash", help="Commit hash that was imported")
@with_app_context
@wrap_async
async def add(  # noqa: PLR0913
    app_context: AppContext,
    url: str,
    name: str | None,
    description: str | None,
    branch: str | None,
    commit_hash: str | None,
) -> None:
    """Add a repository to the history, or refresh it if already present."""
    async with open_store(app_context) as store:
        name = name or repo_name_from_url(url)
        record = store.add_repository(url, name, description, branch, commit_hash)
        click.echo(_format_record(record))


@cli.command(name="list")
@click.option("--limit", type=int, help="Only show the most recent repositories")
@click.option(
    "--output-format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Format to display repositories in",
)
@with_app_context
@wrap_async
async def list_repositories(
    app_context: AppContext,
    limit: int | None,
    output_format: str,
) -> None:
    """List repositories, most recently imported first."""
    async with open_store(app_context) as store:
        records = (
            store.get_recent_repositories(limit)
            if limit is not None
            else store.get_all_repositories()
        )

    if output_format == "json":
        click.echo(dumps_pretty(records))
        return
    if not records:
        click.echo("No repositories in history")
        return
    for record in records:
        click.echo(_format_record(record))


@cli.command()
@click.argument("record_id")
@with_app_context
@wrap_async
async def remove(app_context: AppContext, record_id: str) -> None:
    """Remove a repository from the history."""
    async with open_store(app_context) as store:
        store.remove_repository(record_id)
    click.echo(f"Removed {record_id}")


@cli.command()
@click.confirmation_option(prompt="Clear the whole repository history?")
@with_app_context
@wrap_async
async def clear(app_context: AppContext) -> None:
    """Clear the repository history."""
    async with open_store(app_context) as store:
        store.clear_history()
    click.echo("Repository history cleared")


@cli.command()
@with_app_context
@wrap_async
async def sync(app_context: AppContext) -> None:
    """Synchronize the local history with the remote store."""
    if not create_token_store(app_context).is_authenticated():
        click.echo("Not logged in, nothing to sync")
        return
    async with open_store(app_context, initialize=False) as store:
        await store.sync_with_remote()
        count = len(store.get_all_repositories())
    click.echo(f"Synced {count} repositories")


@cli.command()
@click.argument("token")
@with_app_context
@wrap_async
async def login(app_context: AppContext, token: str) -> None:
    """Store a bearer token and reconcile the history with the remote."""
    create_token_store(app_context).set_token(token)
    async with open_store(app_context) as store:
        count = len(store.get_all_repositories())
    click.echo(f"Logged in, {count} repositories in history")


@cli.command()
@with_app_context
def logout(app_context: AppContext) -> None:
    """Forget the stored bearer token."""
    create_token_store(app_context).clear_token()
    click.echo("Logged out")


@cli.command()
def version() -> None:
    """Show the version of repo-history."""
    click.echo(__version__)


if __name__ == "__main__":
    cli()
