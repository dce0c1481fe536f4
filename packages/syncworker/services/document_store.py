"""
Document Store: reconciles fetched markdown against stored content items.

For one repository and one sync run the store:

1. parses every fetched markdown file and routes it to documents or blog posts
2. creates rows for new paths, updates rows whose ``source_hash`` changed and
   leaves identical rows untouched
3. deletes rows whose path was not fetched this run
4. writes the run's DocumentChange rows in one batch
5. reconciles release blocks (announcements are queued in
   ``pending_releases``) and sends content-update notifications

A failure on one file is logged, recorded in ``errors`` and rolled back to
a savepoint. A failure writing the change log propagates and fails the run.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.config import settings
from packages.docshub.database.models import ChangeType, DocumentType, Repository
from packages.docshub.database.postgres_database import savepoint
from packages.docshub.dtos.sync import ContentChange, ContentSyncResult, ParsedDocument, SourceFile
from packages.docshub.parsing.document_parser import classify_document, parse_markdown_document

from .notifications import ContentUpdateContext, NotificationCoordinator
from .release_service import ReleaseService
from .search_indexer import SearchIndexer

logger = logging.getLogger(__name__)


@dataclass
class _Updated:
    item: Any
    document_type: DocumentType
    parsed: ParsedDocument


def content_url(document_type: DocumentType, slug: str) -> str:
    section = "blog" if document_type == DocumentType.BLOG else "docs"
    return f"{settings.PORTAL_BASE_URL.rstrip('/')}/{section}/{slug}"


class DocumentStoreService:
    """Reconciles Document and BlogPost rows of one repository.

    Args:
        documents: ContentItemRepository for the documents table
        blog_posts: ContentItemRepository for the blog_posts table
        changes: DocumentChangeRepository for the run's audit rows
        releases: ReleaseService handling release blocks
        indexer: SearchIndexer regenerating vectors of changed rows
        notifier: NotificationCoordinator for content-update events
        session: Session used for per-file savepoints
    """

    def __init__(
        self,
        documents: Any,
        blog_posts: Any,
        changes: Any,
        releases: ReleaseService,
        indexer: SearchIndexer,
        notifier: NotificationCoordinator,
        session: AsyncSession | None = None,
    ):
        self.documents = documents
        self.blog_posts = blog_posts
        self.changes = changes
        self.releases = releases
        self.indexer = indexer
        self.notifier = notifier
        self.session = session

    def _store_for(self, document_type: DocumentType) -> Any:
        return self.blog_posts if document_type == DocumentType.BLOG else self.documents

    async def store_documents(
        self,
        repository: Repository,
        files: list[SourceFile],
        sync_log_id: str,
        failed_paths: Iterable[str] = (),
    ) -> ContentSyncResult:
        result = ContentSyncResult()
        repository_id = repository.id

        existing: dict[DocumentType, dict[str, Any]] = {}
        for document_type in (DocumentType.DOCUMENT, DocumentType.BLOG):
            stored = await self._store_for(document_type).list_for_repository(repository_id)
            existing[document_type] = {item.file_path: item for item in stored}
        # a file that failed to download still exists upstream
        fetched_paths = {file.path for file in files} | set(failed_paths)
        parsed_documents: list[ParsedDocument] = []
        updated: list[_Updated] = []

        for file in files:
            document_type = classify_document(file.path)
            if document_type is None:
                logger.debug(f"Ignoring non-content file {file.path}")
                continue
            try:
                async with savepoint(self.session):
                    parsed = parse_markdown_document(file.path, file.content)
                    parsed_documents.append(parsed)
                    item = await self._reconcile_file(
                        repository_id, parsed, document_type, existing[document_type], result
                    )
                    if item is not None:
                        updated.append(_Updated(item, document_type, parsed))
            except Exception as e:
                message = f"Failed to process {file.path}: {e}"
                logger.error(message)
                result.errors.append(message)

        for document_type, by_path in existing.items():
            for path, item in by_path.items():
                if path in fetched_paths:
                    continue
                try:
                    async with savepoint(self.session):
                        await self._store_for(document_type).delete(item)
                except Exception as e:
                    message = f"Failed to delete {path}: {e}"
                    logger.error(message)
                    result.errors.append(message)
                    continue
                if document_type == DocumentType.BLOG:
                    result.blogs_deleted += 1
                else:
                    result.docs_deleted += 1
                result.changes.append(
                    ContentChange(
                        change_type=ChangeType.DELETED,
                        document_type=document_type,
                        file_path=path,
                        title=item.title,
                        old_hash=item.source_hash,
                    )
                )
                logger.info(f"Deleted {document_type.value} {path}")

        await self.changes.create_many(sync_log_id, result.changes)

        release_result = await self.releases.process_releases(
            repository_id, parsed_documents, lambda doc: content_url(doc.document_type, doc.slug)
        )
        result.releases_created = release_result.created
        result.releases_updated = release_result.updated
        result.pending_releases = release_result.pending
        result.errors.extend(release_result.errors)

        await self._notify_updates(updated)

        logger.info(
            f"Content sync: {result.total_added} added, {result.total_updated} updated, "
            f"{result.total_deleted} deleted, {result.skipped} unchanged, {len(result.errors)} errors"
        )
        return result

    async def _reconcile_file(
        self,
        repository_id: str,
        parsed: ParsedDocument,
        document_type: DocumentType,
        existing: dict[str, Any],
        result: ContentSyncResult,
    ) -> Any | None:
        """Apply one file. Returns the row if it was modified, else None."""
        store = self._store_for(document_type)
        current = existing.get(parsed.file_path)

        if current is None:
            item = await store.create(repository_id, parsed.to_fields())
            await self.indexer.index_content_item(store, item)
            if document_type == DocumentType.BLOG:
                result.blogs_added += 1
            else:
                result.docs_added += 1
            result.changes.append(
                ContentChange(
                    change_type=ChangeType.ADDED,
                    document_type=document_type,
                    file_path=parsed.file_path,
                    title=parsed.title,
                    new_hash=parsed.source_hash,
                )
            )
            logger.info(f"Added {document_type.value} {parsed.file_path}")
            return None

        if current.source_hash == parsed.source_hash:
            result.skipped += 1
            return None

        old_hash = current.source_hash
        item = await store.update(current, parsed.to_fields())
        await self.indexer.index_content_item(store, item)
        if document_type == DocumentType.BLOG:
            result.blogs_updated += 1
        else:
            result.docs_updated += 1
        result.changes.append(
            ContentChange(
                change_type=ChangeType.MODIFIED,
                document_type=document_type,
                file_path=parsed.file_path,
                title=parsed.title,
                old_hash=old_hash,
                new_hash=parsed.source_hash,
            )
        )
        logger.info(f"Updated {document_type.value} {parsed.file_path}")
        return item

    async def _notify_updates(self, updated: list[_Updated]) -> None:
        for entry in updated:
            if entry.parsed.is_draft:
                continue
            try:
                await self.notifier.notify_content_update(
                    ContentUpdateContext(
                        content_type=entry.document_type.value,
                        content_id=entry.item.id,
                        content_title=entry.parsed.title,
                        content_url=content_url(entry.document_type, entry.parsed.slug),
                        updated_at=datetime.now(UTC),
                    )
                )
            except Exception as e:
                logger.warning(f"Content update notification failed for {entry.parsed.file_path}: {e}")
