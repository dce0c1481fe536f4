"""Admin CLI for repository syncs."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from typing import Any, TypeVar

import click
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.config import settings
from packages.docshub.database.exceptions import RepositoryError
from packages.docshub.database.models import Repository
from packages.docshub.database.postgres_database import pg_connection_manager
from packages.docshub.database.repositories import (
    RepositoryConfigRepository,
    RepositoryImageRepository,
    SyncLogRepository,
)
from packages.docshub.exceptions import SyncError
from packages.docshub.logging_utils import configure_logging
from packages.docshub.utils.encryption import SecretEncryption, SecretEncryptionError, encrypt_secret

T = TypeVar("T")


def _run(coro_factory: Callable[[], Awaitable[T]]) -> T:
    async def _wrapped() -> T:
        try:
            return await coro_factory()
        finally:
            await pg_connection_manager.close()

    try:
        return asyncio.run(_wrapped())
    except (RepositoryError, SyncError, SecretEncryptionError) as e:
        raise click.ClickException(str(e)) from e


async def _resolve(session: AsyncSession, ref: str) -> Repository:
    repositories = RepositoryConfigRepository(session)
    repository = await repositories.get_by_slug(ref) or await repositories.get_by_id(ref)
    if repository is None:
        raise click.ClickException(f"Unknown repository: {ref}")
    return repository


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
def cli(log_level: str | None) -> None:
    """Docs portal repository sync administration."""
    configure_logging(log_level or settings.LOG_LEVEL)
    SecretEncryption.initialize(settings.CONNECTOR_SECRETS_KEY)


@cli.command("list")
def list_repositories() -> None:
    """List configured repositories and their last sync."""

    async def _list() -> list[Repository]:
        async with pg_connection_manager.get_session() as session:
            return await RepositoryConfigRepository(session).list_all()

    for repository in _run(_list):
        status = repository.last_sync_status.value if repository.last_sync_status else "never"
        last = repository.last_sync_at.isoformat() if repository.last_sync_at else "-"
        state = "enabled" if repository.enabled else "disabled"
        click.echo(
            f"{repository.slug:<24} {repository.source.value:<7} {state:<9} "
            f"every {repository.sync_frequency}s  last={last} ({status})"
        )


@cli.command("sync-now")
@click.argument("repository")
@click.option("--via-celery", is_flag=True, help="Queue the sync on a worker instead of running it here.")
def sync_now(repository: str, via_celery: bool) -> None:
    """Sync REPOSITORY (slug or id) immediately."""

    async def _repository_id() -> str:
        async with pg_connection_manager.get_session() as session:
            return (await _resolve(session, repository)).id

    repository_id = _run(_repository_id)

    if via_celery:
        from packages.syncworker.tasks.sync import sync_repository_now

        task = sync_repository_now.delay(repository_id, "cli")
        click.echo(f"Queued sync task {task.id}")
        return

    from packages.syncworker.services.sync_service import RepositorySyncService

    result = _run(lambda: RepositorySyncService().sync_repository(repository_id, triggered_by="cli"))
    click.echo(json.dumps(asdict(result), indent=2, default=str))


@cli.command("run-due")
def run_due() -> None:
    """Run one scheduler tick: sync every repository that is due."""
    from packages.syncworker.tasks.sync_dispatcher import process_scheduled_syncs

    stats = _run(process_scheduled_syncs)
    click.echo(json.dumps(stats, indent=2, default=str))


@cli.command("history")
@click.argument("repository")
@click.option("--limit", default=10, show_default=True)
@click.option("--changes", is_flag=True, help="Show the per-file changes of each run.")
def history(repository: str, limit: int, changes: bool) -> None:
    """Show recent sync runs of REPOSITORY."""

    async def _history() -> list[dict[str, Any]]:
        async with pg_connection_manager.get_session() as session:
            repo = await _resolve(session, repository)
            logs = SyncLogRepository(session)
            rows = []
            for entry in await logs.list_for_repository(repo.id, limit=limit):
                row = {
                    "id": entry.id,
                    "status": entry.status.value,
                    "started_at": entry.started_at.isoformat() if entry.started_at else None,
                    "duration_ms": entry.duration_ms,
                    "added": entry.files_added,
                    "changed": entry.files_changed,
                    "deleted": entry.files_deleted,
                    "error": entry.error,
                }
                if changes:
                    detailed = await logs.get_with_changes(entry.id)
                    row["changes"] = [
                        f"{change.change_type.value} {change.document_type.value} {change.file_path}"
                        for change in (detailed.changes if detailed else [])
                    ]
                rows.append(row)
            return rows

    for row in _run(_history):
        click.echo(json.dumps(row, default=str))


@cli.command("enable")
@click.argument("repository")
def enable(repository: str) -> None:
    """Enable scheduled and manual syncs of REPOSITORY."""
    _set_enabled(repository, True)


@cli.command("disable")
@click.argument("repository")
def disable(repository: str) -> None:
    """Disable REPOSITORY; it is skipped by the scheduler and refuses manual syncs."""
    _set_enabled(repository, False)


def _set_enabled(ref: str, enabled: bool) -> None:
    async def _update() -> None:
        async with pg_connection_manager.get_session() as session:
            repo = await _resolve(session, ref)
            await RepositoryConfigRepository(session).set_enabled(repo.id, enabled)

    _run(_update)
    click.echo(f"{ref} {'enabled' if enabled else 'disabled'}")


@cli.command("set-frequency")
@click.argument("repository")
@click.argument("seconds", type=int)
def set_frequency(repository: str, seconds: int) -> None:
    """Set the sync interval of REPOSITORY in seconds (0 = manual only)."""

    async def _update() -> None:
        async with pg_connection_manager.get_session() as session:
            repo = await _resolve(session, repository)
            await RepositoryConfigRepository(session).set_sync_frequency(repo.id, seconds)

    _run(_update)
    click.echo(f"{repository} sync frequency set to {seconds}s")


@cli.command("set-token")
@click.argument("repository")
@click.option("--token", prompt=True, hide_input=True, help="Access token (GitHub token or Azure DevOps PAT).")
def set_token(repository: str, token: str) -> None:
    """Store an encrypted access token for REPOSITORY."""

    async def _update() -> None:
        async with pg_connection_manager.get_session() as session:
            repo = await _resolve(session, repository)
            repo.pat_encrypted = encrypt_secret(token.strip())
            await session.flush()

    _run(_update)
    click.echo(f"Token stored for {repository} (key_id={SecretEncryption.get_key_id()})")


@cli.command("cleanup-images")
@click.argument("repository")
@click.confirmation_option(prompt="Delete every mirrored image of this repository?")
def cleanup_images(repository: str) -> None:
    """Remove all mirrored images of REPOSITORY."""
    from packages.syncworker.services.image_sync_service import ImageSyncService

    async def _cleanup() -> int:
        async with pg_connection_manager.get_session() as session:
            repo = await _resolve(session, repository)
            return await ImageSyncService(RepositoryImageRepository(session), session=session).cleanup_repository_images(
                repo
            )

    click.echo(f"Removed {_run(_cleanup)} images")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
