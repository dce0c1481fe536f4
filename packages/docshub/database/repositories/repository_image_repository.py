"""Repository implementation for RepositoryImage model."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import DatabaseOperationError
from packages.docshub.database.models import RepositoryImage

logger = logging.getLogger(__name__)


class RepositoryImageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_repository(self, repository_id: str) -> list[RepositoryImage]:
        try:
            result = await self.session.execute(
                select(RepositoryImage).where(RepositoryImage.repository_id == repository_id)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError("list", "repository_image", str(e)) from e

    async def create(self, repository_id: str, fields: dict[str, Any]) -> RepositoryImage:
        try:
            image = RepositoryImage(repository_id=repository_id, last_synced_at=datetime.now(UTC), **fields)
            self.session.add(image)
            await self.session.flush()
            return image
        except Exception as e:
            raise DatabaseOperationError("create", "repository_image", str(e)) from e

    async def update(self, image: RepositoryImage, fields: dict[str, Any]) -> RepositoryImage:
        try:
            for key, value in fields.items():
                setattr(image, key, value)
            image.last_synced_at = datetime.now(UTC)
            await self.session.flush()
            return image
        except Exception as e:
            raise DatabaseOperationError("update", "repository_image", str(e)) from e

    async def touch(self, image: RepositoryImage) -> None:
        """Record that an unchanged image was seen in this run."""
        image.last_synced_at = datetime.now(UTC)
        await self.session.flush()

    async def delete(self, image: RepositoryImage) -> None:
        try:
            await self.session.delete(image)
            await self.session.flush()
        except Exception as e:
            raise DatabaseOperationError("delete", "repository_image", str(e)) from e
