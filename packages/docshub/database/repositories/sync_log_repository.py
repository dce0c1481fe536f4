"""Repository implementation for SyncLog and DocumentChange models."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from packages.docshub.database.exceptions import DatabaseOperationError, EntityNotFoundError, InvalidStateError
from packages.docshub.database.models import DocumentChange, SyncLog, SyncStatus
from packages.docshub.dtos.sync import ContentChange

logger = logging.getLogger(__name__)


class SyncLogRepository:
    """Sync run lifecycle: created in progress, finalized exactly once."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, repository_id: str, triggered_by: str = "scheduler") -> SyncLog:
        try:
            sync_log = SyncLog(
                repository_id=repository_id,
                status=SyncStatus.IN_PROGRESS,
                triggered_by=triggered_by,
                started_at=datetime.now(UTC),
                files_added=0,
                files_changed=0,
                files_deleted=0,
            )
            self.session.add(sync_log)
            await self.session.flush()
            logger.info(f"Created sync log {sync_log.id} for repository {repository_id} (triggered_by={triggered_by})")
            return sync_log
        except Exception as e:
            logger.error(f"Failed to create sync log for repository {repository_id}: {e}")
            raise DatabaseOperationError("create", "sync_log", str(e)) from e

    async def get_by_id(self, sync_log_id: str) -> SyncLog | None:
        try:
            result = await self.session.execute(select(SyncLog).where(SyncLog.id == sync_log_id))
            return result.scalar_one_or_none()
        except Exception as e:
            raise DatabaseOperationError("get", "sync_log", str(e)) from e

    async def _get_open(self, sync_log_id: str) -> SyncLog:
        sync_log = await self.get_by_id(sync_log_id)
        if sync_log is None:
            raise EntityNotFoundError("sync_log", sync_log_id)
        if sync_log.status != SyncStatus.IN_PROGRESS:
            raise InvalidStateError(f"Sync log {sync_log_id} is already finalized", current_state=str(sync_log.status))
        return sync_log

    async def complete(
        self,
        sync_log_id: str,
        files_added: int,
        files_changed: int,
        files_deleted: int,
        duration_ms: int,
    ) -> SyncLog:
        """Finalize a run as successful.

        Raises:
            EntityNotFoundError: If the sync log does not exist
            InvalidStateError: If the run was already finalized
        """
        sync_log = await self._get_open(sync_log_id)
        sync_log.status = SyncStatus.SUCCESS
        sync_log.files_added = files_added
        sync_log.files_changed = files_changed
        sync_log.files_deleted = files_deleted
        sync_log.duration_ms = duration_ms
        sync_log.completed_at = datetime.now(UTC)
        await self.session.flush()
        return sync_log

    async def fail(self, sync_log_id: str, error: str, duration_ms: int) -> SyncLog:
        """Finalize a run as failed with its error message."""
        sync_log = await self._get_open(sync_log_id)
        sync_log.status = SyncStatus.FAILED
        sync_log.error = error
        sync_log.duration_ms = duration_ms
        sync_log.completed_at = datetime.now(UTC)
        await self.session.flush()
        return sync_log

    async def list_for_repository(self, repository_id: str, limit: int = 20) -> list[SyncLog]:
        try:
            result = await self.session.execute(
                select(SyncLog)
                .where(SyncLog.repository_id == repository_id)
                .order_by(desc(SyncLog.started_at))
                .limit(limit)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError("list", "sync_log", str(e)) from e

    async def get_with_changes(self, sync_log_id: str) -> SyncLog | None:
        try:
            result = await self.session.execute(
                select(SyncLog).options(selectinload(SyncLog.changes)).where(SyncLog.id == sync_log_id)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise DatabaseOperationError("get", "sync_log", str(e)) from e


class DocumentChangeRepository:
    """Write-once audit rows for content mutations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_many(self, sync_log_id: str, changes: Sequence[ContentChange]) -> int:
        """Persist all change rows of a run in one batch.

        Errors propagate; a failed batch fails the whole run.
        """
        if not changes:
            return 0
        try:
            self.session.add_all(
                [
                    DocumentChange(
                        sync_log_id=sync_log_id,
                        change_type=change.change_type,
                        document_type=change.document_type,
                        file_path=change.file_path,
                        title=change.title,
                        old_hash=change.old_hash,
                        new_hash=change.new_hash,
                    )
                    for change in changes
                ]
            )
            await self.session.flush()
        except Exception as e:
            logger.error(f"Failed to write {len(changes)} document changes for sync log {sync_log_id}: {e}")
            raise DatabaseOperationError("create", "document_change", str(e)) from e
        return len(changes)
