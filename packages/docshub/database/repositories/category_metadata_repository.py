"""Repository implementation for CategoryMetadata model."""

import logging
from collections.abc import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import DatabaseOperationError
from packages.docshub.database.models import CategoryMetadata
from packages.docshub.dtos.sync import CategoryNode

logger = logging.getLogger(__name__)


class CategoryMetadataRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_repository(self, repository_id: str) -> list[CategoryMetadata]:
        try:
            result = await self.session.execute(
                select(CategoryMetadata)
                .where(CategoryMetadata.repository_id == repository_id)
                .order_by(CategoryMetadata.level, CategoryMetadata.order)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError("list", "category_metadata", str(e)) from e

    async def upsert(self, repository_id: str, node: CategoryNode) -> bool:
        """Create or update the node keyed by (repository_id, slug).

        Returns:
            True if a new row was created
        """
        try:
            result = await self.session.execute(
                select(CategoryMetadata).where(
                    CategoryMetadata.repository_id == repository_id,
                    CategoryMetadata.category_slug == node.slug,
                )
            )
            existing = result.scalar_one_or_none()
            values = {
                "title": node.title,
                "icon": node.icon,
                "description": node.description,
                "parent_slug": node.parent_slug,
                "level": node.level,
                "order": node.order,
                "source_meta_path": node.source_meta_path,
            }
            if existing is None:
                self.session.add(CategoryMetadata(repository_id=repository_id, category_slug=node.slug, **values))
                await self.session.flush()
                return True
            for key, value in values.items():
                setattr(existing, key, value)
            await self.session.flush()
            return False
        except Exception as e:
            logger.error(f"Failed to upsert category {node.slug}: {e}")
            raise DatabaseOperationError("upsert", "category_metadata", str(e)) from e

    async def delete_by_slugs(self, repository_id: str, slugs: Iterable[str]) -> int:
        slugs = list(slugs)
        if not slugs:
            return 0
        try:
            await self.session.execute(
                delete(CategoryMetadata).where(
                    CategoryMetadata.repository_id == repository_id,
                    CategoryMetadata.category_slug.in_(slugs),
                )
            )
            await self.session.flush()
            return len(slugs)
        except Exception as e:
            logger.error(f"Failed to delete categories for repository {repository_id}: {e}")
            raise DatabaseOperationError("delete", "category_metadata", str(e)) from e
