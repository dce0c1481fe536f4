"""Repository implementation for Author model."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.exceptions import DatabaseOperationError
from packages.docshub.database.models import Author
from packages.docshub.dtos.sync import AuthorProfile

logger = logging.getLogger(__name__)


class AuthorRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_email(self, email: str) -> Author | None:
        try:
            result = await self.session.execute(select(Author).where(Author.email == email))
            return result.scalar_one_or_none()
        except Exception as e:
            raise DatabaseOperationError("get", "author", str(e)) from e

    async def upsert(self, profile: AuthorProfile) -> bool:
        """Create or update the author keyed by email. Returns True on create."""
        existing = await self.get_by_email(profile.email)
        try:
            if existing is None:
                self.session.add(Author(email=profile.email, **profile.to_fields()))
                await self.session.flush()
                return True
            for key, value in profile.to_fields().items():
                setattr(existing, key, value)
            await self.session.flush()
            return False
        except Exception as e:
            logger.error(f"Failed to upsert author {profile.email}: {e}")
            raise DatabaseOperationError("upsert", "author", str(e)) from e
