"""Author profile upserts from ``authors/*.json`` files."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.postgres_database import savepoint
from packages.docshub.dtos.sync import AuthorSyncResult, SourceFile
from packages.docshub.parsing.author_parser import parse_author_profile

logger = logging.getLogger(__name__)


class AuthorService:
    """Upserts authors by email. Authors are never deleted by a sync."""

    def __init__(self, authors: Any, session: AsyncSession | None = None):
        self.authors = authors
        self.session = session

    async def store_authors(self, files: list[SourceFile]) -> AuthorSyncResult:
        result = AuthorSyncResult()
        for file in files:
            try:
                profile = parse_author_profile(file.path, file.content)
                async with savepoint(self.session):
                    created = await self.authors.upsert(profile)
            except Exception as e:
                message = f"Failed to process author file {file.path}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue
            if created:
                result.created += 1
            else:
                result.updated += 1
        if files:
            logger.info(f"Authors: {result.created} created, {result.updated} updated, {len(result.errors)} errors")
        return result
