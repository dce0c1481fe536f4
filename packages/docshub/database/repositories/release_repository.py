"""Repository implementations for Release and Team models."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import DatabaseOperationError
from packages.docshub.database.models import Release, Team

logger = logging.getLogger(__name__)


class ReleaseRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, repository_id: str, file_path: str, version: str) -> Release | None:
        try:
            result = await self.session.execute(
                select(Release).where(
                    Release.repository_id == repository_id,
                    Release.file_path == file_path,
                    Release.version == version,
                )
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise DatabaseOperationError("get", "release", str(e)) from e

    async def create(self, repository_id: str, fields: dict[str, Any]) -> Release:
        try:
            release = Release(repository_id=repository_id, **fields)
            self.session.add(release)
            await self.session.flush()
            return release
        except Exception as e:
            logger.error(f"Failed to create release {fields.get('version')}: {e}")
            raise DatabaseOperationError("create", "release", str(e)) from e

    async def update(self, release: Release, fields: dict[str, Any]) -> Release:
        try:
            for key, value in fields.items():
                setattr(release, key, value)
            await self.session.flush()
            return release
        except Exception as e:
            raise DatabaseOperationError("update", "release", str(e)) from e

    async def mark_notified(self, release_id: str) -> None:
        """Record that the "release published" announcement went out."""
        try:
            await self.session.execute(
                update(Release).where(Release.id == release_id).values(notified_at=datetime.now(UTC))
            )
        except Exception as e:
            raise DatabaseOperationError("update", "release", str(e)) from e


class TeamRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_enabled_by_slugs(self, slugs: Iterable[str]) -> list[Team]:
        slugs = list(slugs)
        if not slugs:
            return []
        try:
            result = await self.session.execute(select(Team).where(Team.slug.in_(slugs), Team.enabled.is_(True)))
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError("list", "team", str(e)) from e
