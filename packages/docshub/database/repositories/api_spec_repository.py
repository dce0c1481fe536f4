"""Repository implementation for APISpec model."""

import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import DatabaseOperationError
from packages.docshub.database.models import APISpec

logger = logging.getLogger(__name__)


class APISpecRepository:
    """Data access for versioned API specs, unique on (slug, version)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_repository(self, repository_id: str) -> list[APISpec]:
        try:
            result = await self.session.execute(select(APISpec).where(APISpec.repository_id == repository_id))
            return list(result.scalars().all())
        except Exception as e:
            raise DatabaseOperationError("list", "api_spec", str(e)) from e

    async def get_by_slug_version(self, slug: str, version: str) -> APISpec | None:
        try:
            result = await self.session.execute(
                select(APISpec).where(APISpec.slug == slug, APISpec.version == version)
            )
            return result.scalar_one_or_none()
        except Exception as e:
            raise DatabaseOperationError("get", "api_spec", str(e)) from e

    async def create(self, fields: dict[str, Any]) -> APISpec:
        try:
            spec = APISpec(**fields)
            self.session.add(spec)
            await self.session.flush()
            return spec
        except Exception as e:
            logger.error(f"Failed to create api spec {fields.get('slug')}@{fields.get('version')}: {e}")
            raise DatabaseOperationError("create", "api_spec", str(e)) from e

    async def update(self, spec: APISpec, fields: dict[str, Any]) -> APISpec:
        try:
            for key, value in fields.items():
                setattr(spec, key, value)
            await self.session.flush()
            return spec
        except Exception as e:
            raise DatabaseOperationError("update", "api_spec", str(e)) from e

    async def delete(self, spec: APISpec) -> None:
        try:
            await self.session.delete(spec)
            await self.session.flush()
        except Exception as e:
            raise DatabaseOperationError("delete", "api_spec", str(e)) from e

    async def update_search_vector(self, spec_id: str, search_text: str) -> None:
        try:
            await self.session.execute(
                update(APISpec)
                .where(APISpec.id == spec_id)
                .values(search_vector=func.to_tsvector("english", search_text))
                .execution_options(synchronize_session=False)
            )
        except Exception as e:
            raise DatabaseOperationError("index", "api_spec", str(e)) from e
