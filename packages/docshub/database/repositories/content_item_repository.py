"""Repository implementation for Document and BlogPost models."""

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import DatabaseOperationError
from packages.docshub.database.models import BlogPost, Document

logger = logging.getLogger(__name__)

ContentModel = type[Document] | type[BlogPost]


class ContentItemRepository:
    """Data access for one content item table (documents or blog_posts).

    Both tables share their columns, so one class serves either model.
    """

    def __init__(self, session: AsyncSession, model: ContentModel):
        self.session = session
        self.model = model
        self.entity_type = model.__tablename__

    async def list_for_repository(self, repository_id: str) -> list[Any]:
        try:
            result = await self.session.execute(select(self.model).where(self.model.repository_id == repository_id))
            return list(result.scalars().all())
        except Exception as e:
            logger.error(f"Failed to list {self.entity_type} for repository {repository_id}: {e}")
            raise DatabaseOperationError("list", self.entity_type, str(e)) from e

    async def create(self, repository_id: str, fields: dict[str, Any]) -> Any:
        try:
            item = self.model(repository_id=repository_id, last_synced_at=datetime.now(UTC), **fields)
            self.session.add(item)
            await self.session.flush()
            return item
        except Exception as e:
            logger.error(f"Failed to create {self.entity_type} {fields.get('file_path')}: {e}")
            raise DatabaseOperationError("create", self.entity_type, str(e)) from e

    async def update(self, item: Any, fields: dict[str, Any]) -> Any:
        try:
            for key, value in fields.items():
                setattr(item, key, value)
            item.last_synced_at = datetime.now(UTC)
            await self.session.flush()
            return item
        except Exception as e:
            logger.error(f"Failed to update {self.entity_type} {item.file_path}: {e}")
            raise DatabaseOperationError("update", self.entity_type, str(e)) from e

    async def delete(self, item: Any) -> None:
        try:
            await self.session.delete(item)
            await self.session.flush()
        except Exception as e:
            logger.error(f"Failed to delete {self.entity_type} {item.file_path}: {e}")
            raise DatabaseOperationError("delete", self.entity_type, str(e)) from e

    async def list_slugs(self, repository_id: str) -> list[str]:
        try:
            result = await self.session.execute(
                select(self.model.slug).where(self.model.repository_id == repository_id)
            )
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError("list", self.entity_type, str(e)) from e

    async def update_search_vector(self, item_id: str, search_text: str) -> None:
        """Regenerate the english full-text vector for one row."""
        try:
            await self.session.execute(
                update(self.model)
                .where(self.model.id == item_id)
                .values(search_vector=func.to_tsvector("english", search_text))
                .execution_options(synchronize_session=False)
            )
        except Exception as e:
            logger.error(f"Failed to update search vector for {self.entity_type} {item_id}: {e}")
            raise DatabaseOperationError("index", self.entity_type, str(e)) from e
