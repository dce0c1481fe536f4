"""Scheduled sync dispatcher.

Celery Beat runs ``dispatch_due_syncs`` every SYNC_CHECK_INTERVAL_SECONDS.
Each tick syncs every due repository concurrently; a failure in one
repository never blocks or fails the others.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from packages.docshub.database.db_retry import with_db_retry
from packages.docshub.database.models import Repository
from packages.docshub.database.postgres_database import pg_connection_manager
from packages.docshub.database.repositories import RepositoryConfigRepository
from packages.docshub.exceptions import SyncAlreadyRunningError
from packages.syncworker.celery_app import celery_app
from packages.syncworker.services.sync_service import RepositorySyncService

logger = logging.getLogger(__name__)


def is_due(repository: Repository, now: datetime) -> bool:
    """Never synced, or at least ``sync_frequency`` seconds since the last sync."""
    if not repository.sync_frequency or repository.sync_frequency <= 0:
        return False
    if repository.last_sync_at is None:
        return True
    last_sync_at = repository.last_sync_at
    if last_sync_at.tzinfo is None:
        last_sync_at = last_sync_at.replace(tzinfo=UTC)
    return (now - last_sync_at).total_seconds() >= repository.sync_frequency


@with_db_retry(retries=2, delay=2.0)
async def _load_scheduled() -> list[Repository]:
    async with pg_connection_manager.get_session() as session:
        return await RepositoryConfigRepository(session).list_scheduled()


async def process_scheduled_syncs(
    sync_service: RepositorySyncService | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Sync every enabled repository that is due.

    Returns:
        Dictionary with dispatch statistics
    """
    now = now or datetime.now(UTC)
    stats: dict[str, Any] = {
        "checked_at": now.isoformat(),
        "scheduled_count": 0,
        "due_count": 0,
        "succeeded": [],
        "failed": [],
        "skipped": [],
        "errors": [],
    }

    repositories = await _load_scheduled()

    stats["scheduled_count"] = len(repositories)
    due = [repository for repository in repositories if is_due(repository, now)]
    stats["due_count"] = len(due)
    if not due:
        logger.debug("No repositories due for sync")
        return stats

    logger.info(f"Found {len(due)} repositories due for sync")
    service = sync_service or RepositorySyncService()
    outcomes = await asyncio.gather(
        *(service.sync_repository(repository.id, triggered_by="scheduler") for repository in due),
        return_exceptions=True,
    )

    for repository, outcome in zip(due, outcomes, strict=True):
        if isinstance(outcome, SyncAlreadyRunningError):
            logger.info(f"Skipping {repository.slug}: a sync is already running")
            stats["skipped"].append(repository.slug)
        elif isinstance(outcome, BaseException):
            logger.error(f"Scheduled sync of {repository.slug} failed: {outcome}")
            stats["failed"].append(repository.slug)
            stats["errors"].append({"repository": repository.slug, "error": str(outcome)})
        else:
            stats["succeeded"].append(repository.slug)

    return stats


@celery_app.task(name="syncworker.tasks.dispatch_due_syncs", bind=True)
def dispatch_due_syncs(self: Any) -> dict[str, Any]:  # noqa: ARG001
    """Celery task to sync repositories that are due.

    Returns:
        Dictionary with dispatch statistics
    """
    logger.info("Running sync dispatcher task")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        result = loop.run_until_complete(process_scheduled_syncs())
    finally:
        loop.run_until_complete(pg_connection_manager.close())
        loop.close()

    logger.info(
        f"Sync dispatcher completed: due={result['due_count']}, succeeded={len(result['succeeded'])}, "
        f"failed={len(result['failed'])}, skipped={len(result['skipped'])}"
    )
    return result
