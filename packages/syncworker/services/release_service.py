"""Release detection for release blocks embedded in synced documents."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.postgres_database import savepoint
from packages.docshub.dtos.sync import ParsedDocument, ReleaseBlock
from packages.docshub.parsing.release_blocks import is_valid_release_version

from .notifications import ReleasePublishedContext

logger = logging.getLogger(__name__)


@dataclass
class ReleaseSyncResult:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    # releases not yet announced, sent once the run has committed
    pending: list[ReleasePublishedContext] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


class ReleaseService:
    """Creates and updates releases found in parsed documents.

    A release is identified by (repository, file path, version). This service
    never sends notifications: every release whose ``notified_at`` is still
    empty is returned in ``pending`` and announced by the orchestrator after
    the run's transaction commits. Later content or team changes update the
    row silently.
    """

    def __init__(self, releases: Any, teams: Any, session: AsyncSession | None = None):
        self.releases = releases
        self.teams = teams
        self.session = session

    async def _enabled_team_slugs(self, documents: list[ParsedDocument]) -> set[str]:
        requested = {team for doc in documents for block in doc.releases for team in block.teams}
        if not requested:
            return set()
        return {team.slug for team in await self.teams.list_enabled_by_slugs(requested)}

    async def process_releases(
        self,
        repository_id: str,
        documents: list[ParsedDocument],
        document_url: Callable[[ParsedDocument], str],
    ) -> ReleaseSyncResult:
        """Reconcile every release block of ``documents``.

        Args:
            repository_id: Repository the documents belong to
            documents: Parsed documents of this run, changed or not
            document_url: Builds the portal URL used in notifications
        """
        result = ReleaseSyncResult()
        enabled = await self._enabled_team_slugs(documents)

        for doc in documents:
            for block in doc.releases:
                teams = [team for team in block.teams if team in enabled]
                if not teams:
                    logger.info(f"Skipping release {block.version} in {doc.file_path}: no known enabled team")
                    result.skipped += 1
                    continue
                if not is_valid_release_version(block.version):
                    logger.warning(f"Release version {block.version!r} in {doc.file_path} is not yyyy.mm.dd.N")

                try:
                    async with savepoint(self.session):
                        release = await self._reconcile(repository_id, doc, block, teams, result)
                except Exception as e:
                    message = f"Release {block.version} in {doc.file_path}: {e}"
                    logger.error(f"Failed to process release: {message}")
                    result.errors.append(message)
                    continue

                if release.notified_at is None:
                    result.pending.append(
                        ReleasePublishedContext(
                            release_id=release.id,
                            version=block.version,
                            content=block.content,
                            document_url=document_url(doc),
                            document_title=doc.title,
                            teams=teams,
                        )
                    )
        return result

    async def _reconcile(
        self,
        repository_id: str,
        doc: ParsedDocument,
        block: ReleaseBlock,
        teams: list[str],
        result: ReleaseSyncResult,
    ) -> Any:
        existing = await self.releases.get(repository_id, doc.file_path, block.version)

        if existing is None:
            release = await self.releases.create(
                repository_id,
                {
                    "version": block.version,
                    "content": block.content,
                    "teams": teams,
                    "file_path": doc.file_path,
                    "document_title": doc.title,
                    "document_slug": doc.slug,
                },
            )
            result.created += 1
            logger.info(f"New release {block.version} in {doc.file_path} for teams {', '.join(teams)}")
            return release

        if existing.content != block.content or set(existing.teams or []) != set(teams):
            await self.releases.update(
                existing,
                {"content": block.content, "teams": teams, "document_title": doc.title, "document_slug": doc.slug},
            )
            result.updated += 1
        else:
            result.unchanged += 1
        return existing
