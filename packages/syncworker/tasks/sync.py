"""Manual "sync now" task."""

import asyncio
import logging
from dataclasses import asdict
from typing import Any

from packages.docshub.database.postgres_database import pg_connection_manager
from packages.syncworker.celery_app import celery_app
from packages.syncworker.services.sync_service import RepositorySyncService

logger = logging.getLogger(__name__)


async def run_manual_sync(repository_id: str, triggered_by: str = "manual") -> dict[str, Any]:
    result = await RepositorySyncService().sync_repository(repository_id, triggered_by=triggered_by)
    return asdict(result)


@celery_app.task(name="syncworker.tasks.sync_repository_now", bind=True)
def sync_repository_now(self: Any, repository_id: str, triggered_by: str = "manual") -> dict[str, Any]:  # noqa: ARG001
    """Run one sync immediately, outside the schedule.

    Raises whatever the run raised so the task is marked failed; the
    SyncLog already carries the error by then.
    """
    logger.info(f"Manual sync requested for repository {repository_id} by {triggered_by}")
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(run_manual_sync(repository_id, triggered_by))
    finally:
        loop.run_until_complete(pg_connection_manager.close())
        loop.close()
