"""Versioned API spec storage."""

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.database.models import Repository
from packages.docshub.database.postgres_database import savepoint
from packages.docshub.dtos.sync import ApiSpecSyncResult, SourceFile
from packages.docshub.parsing.api_spec_parser import parse_api_spec
from packages.docshub.utils.hashing import compute_content_hash

from .search_indexer import SearchIndexer

logger = logging.getLogger(__name__)


class ApiSpecService:
    """Reconciles API specs of one repository.

    Specs are unique on (slug, version) across repositories. Changes are
    detected by content hash and source path; a spec is deleted when its
    path is no longer fetched.
    """

    def __init__(self, specs: Any, indexer: SearchIndexer, session: AsyncSession | None = None):
        self.specs = specs
        self.indexer = indexer
        self.session = session

    async def store_api_specs(
        self,
        repository: Repository,
        files: list[SourceFile],
        failed_paths: Iterable[str] = (),
    ) -> ApiSpecSyncResult:
        """Reconcile the repository's specs; ``failed_paths`` are kept as they are."""
        result = ApiSpecSyncResult()
        repository_id = repository.id
        fetched_paths = {file.path for file in files} | set(failed_paths)

        for file in files:
            try:
                async with savepoint(self.session):
                    outcome = await self._store_spec(repository, file)
            except Exception as e:
                message = f"Failed to process API spec {file.path}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue

            if outcome == "added":
                result.total_added += 1
            elif outcome == "updated":
                result.total_updated += 1
            elif outcome == "skipped":
                result.total_skipped += 1
            else:
                result.errors.append(outcome)

        for spec in await self.specs.list_for_repository(repository_id):
            if spec.spec_path in fetched_paths:
                continue
            try:
                async with savepoint(self.session):
                    await self.specs.delete(spec)
            except Exception as e:
                message = f"Failed to delete API spec {spec.slug}@{spec.version}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue
            result.total_deleted += 1
            logger.info(f"Deleted API spec {spec.slug}@{spec.version} ({spec.spec_path})")

        logger.info(
            f"API specs: {result.total_added} added, {result.total_updated} updated, "
            f"{result.total_deleted} deleted, {result.total_skipped} unchanged"
        )
        return result

    async def _store_spec(self, repository: Repository, file: SourceFile) -> str:
        """Apply one spec file; returns ``added``, ``updated``, ``skipped`` or an error message."""
        metadata = parse_api_spec(file.path, file.content)
        content_hash = compute_content_hash(file.content)
        fields = {
            "name": metadata.name,
            "description": metadata.description,
            "category": metadata.category,
            "spec_path": file.path,
            "spec_content": file.content,
            "content_hash": content_hash,
            "repository_id": repository.id,
        }

        existing = await self.specs.get_by_slug_version(metadata.slug, metadata.version)
        if existing is None:
            spec = await self.specs.create({**fields, "slug": metadata.slug, "version": metadata.version})
            await self.indexer.index_api_spec(self.specs, spec)
            logger.info(f"Added API spec {metadata.slug}@{metadata.version}")
            return "added"

        if existing.repository_id and existing.repository_id != repository.id:
            message = (
                f"API spec {metadata.slug}@{metadata.version} from {file.path} "
                f"is owned by another repository; skipped"
            )
            logger.warning(message)
            return message

        if existing.content_hash == content_hash and existing.spec_path == file.path:
            return "skipped"

        spec = await self.specs.update(existing, fields)
        await self.indexer.index_api_spec(self.specs, spec)
        logger.info(f"Updated API spec {metadata.slug}@{metadata.version}")
        return "updated"
