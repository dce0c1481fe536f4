"""Repository implementation for the Repository (external source) model."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import desc, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import (
    DatabaseOperationError,
    EntityNotFoundError,
    ValidationError,
)
from packages.docshub.database.models import Repository, SyncStatus

logger = logging.getLogger(__name__)


class RepositoryConfigRepository:
    """Data access for configured source repositories.

    Besides plain lookups this owns the per-repository sync lease: a sync
    run holds ``sync_lock_token`` until it releases it or the lease expires.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, repository_id: str) -> Repository | None:
        try:
            result = await self.session.execute(select(Repository).where(Repository.id == repository_id))
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get repository {repository_id}: {e}")
            raise DatabaseOperationError("get", "repository", str(e)) from e

    async def get_by_slug(self, slug: str) -> Repository | None:
        try:
            result = await self.session.execute(select(Repository).where(Repository.slug == slug))
            return result.scalar_one_or_none()
        except Exception as e:
            logger.error(f"Failed to get repository by slug {slug}: {e}")
            raise DatabaseOperationError("get", "repository", str(e)) from e

    async def list_all(self) -> list[Repository]:
        try:
            result = await self.session.execute(select(Repository).order_by(Repository.name))
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to list repositories: {e}")
            raise DatabaseOperationError("list", "repository", str(e)) from e

    async def list_scheduled(self) -> list[Repository]:
        """Enabled repositories with a non-zero sync frequency."""
        try:
            result = await self.session.execute(
                select(Repository)
                .where(Repository.enabled.is_(True), Repository.sync_frequency > 0)
                .order_by(desc(Repository.sync_frequency))
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to list scheduled repositories: {e}")
            raise DatabaseOperationError("list", "repository", str(e)) from e

    async def update_sync_status(
        self,
        repository_id: str,
        status: SyncStatus,
        synced_at: datetime | None = None,
    ) -> None:
        """Mirror the terminal state of a run onto the repository row."""
        try:
            await self.session.execute(
                update(Repository)
                .where(Repository.id == repository_id)
                .values(last_sync_status=status, last_sync_at=synced_at or datetime.now(UTC))
            )
            await self.session.flush()
        except Exception as e:
            logger.error(f"Failed to update sync status for repository {repository_id}: {e}")
            raise DatabaseOperationError("update", "repository", str(e)) from e

    async def acquire_sync_lock(
        self,
        repository_id: str,
        token: str,
        ttl_seconds: int,
        now: datetime | None = None,
    ) -> bool:
        """Take the sync lease if it is free or expired.

        Returns:
            True if this caller now holds the lease
        """
        now = now or datetime.now(UTC)
        try:
            result = await self.session.execute(
                update(Repository)
                .where(
                    Repository.id == repository_id,
                    or_(
                        Repository.sync_lock_token.is_(None),
                        Repository.sync_lock_expires_at.is_(None),
                        Repository.sync_lock_expires_at < now,
                    ),
                )
                .values(sync_lock_token=token, sync_lock_expires_at=now + timedelta(seconds=ttl_seconds))
                .execution_options(synchronize_session=False)
            )
            await self.session.flush()
        except Exception as e:
            logger.error(f"Failed to acquire sync lock for repository {repository_id}: {e}")
            raise DatabaseOperationError("lock", "repository", str(e)) from e

        acquired = bool(result.rowcount)
        if not acquired:
            logger.info(f"Sync lock for repository {repository_id} is held by another run")
        return acquired

    async def release_sync_lock(self, repository_id: str, token: str) -> None:
        """Release the lease, only if it is still held by ``token``."""
        try:
            await self.session.execute(
                update(Repository)
                .where(Repository.id == repository_id, Repository.sync_lock_token == token)
                .values(sync_lock_token=None, sync_lock_expires_at=None)
                .execution_options(synchronize_session=False)
            )
            await self.session.flush()
        except Exception as e:
            logger.error(f"Failed to release sync lock for repository {repository_id}: {e}")
            raise DatabaseOperationError("unlock", "repository", str(e)) from e

    async def set_enabled(self, repository_id: str, enabled: bool) -> Repository:
        repository = await self.get_by_id(repository_id)
        if repository is None:
            raise EntityNotFoundError("repository", repository_id)
        repository.enabled = enabled
        await self.session.flush()
        logger.info(f"Repository {repository.slug} {'enabled' if enabled else 'disabled'}")
        return repository

    async def set_sync_frequency(self, repository_id: str, seconds: int) -> Repository:
        """Set the schedule interval; 0 makes the repository manual-only."""
        if seconds < 0:
            raise ValidationError("sync frequency must be zero or a positive number of seconds", "sync_frequency")
        repository = await self.get_by_id(repository_id)
        if repository is None:
            raise EntityNotFoundError("repository", repository_id)
        repository.sync_frequency = seconds
        await self.session.flush()
        return repository
