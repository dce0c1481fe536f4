"""
Sync Service: runs one repository sync end to end.

A run moves its SyncLog from ``in_progress`` to ``success`` or ``failed``
exactly once, and mirrors the terminal state onto the repository row.
Phases run strictly in order because later ones read what earlier ones
wrote:

    fetch -> metadata -> authors -> content -> API specs -> images
          -> category cleanup

"Release published" notifications go out only after the run's transaction
commits, so a failed run never announces a release it rolled back.

Every run holds the repository's sync lease, so a manual trigger racing the
scheduler cannot start a second run for the same repository.
"""

import logging
import time
import uuid
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.config import settings
from packages.docshub.connectors.base import SourceFetcher
from packages.docshub.connectors.factory import create_fetcher
from packages.docshub.connectors.filters import is_author_file, is_markdown_file, is_meta_file
from packages.docshub.database.models import BlogPost, Document, Repository, SyncStatus
from packages.docshub.database.postgres_database import pg_connection_manager
from packages.docshub.database.repositories import (
    APISpecRepository,
    AuthorRepository,
    CategoryMetadataRepository,
    ContentItemRepository,
    DocumentChangeRepository,
    ReleaseRepository,
    RepositoryConfigRepository,
    RepositoryImageRepository,
    SyncLogRepository,
    TeamRepository,
)
from packages.docshub.dtos.sync import SyncRunResult
from packages.docshub.exceptions import RepositoryDisabledError, RepositoryNotFoundError, SyncAlreadyRunningError
from packages.docshub.logging_utils import sync_log_context
from packages.docshub.metrics import sync_metrics

from .api_spec_service import ApiSpecService
from .author_service import AuthorService
from .cache_manager import CacheManager, create_cache_manager
from .document_store import DocumentStoreService
from .image_sync_service import ImageSyncService
from .metadata_service import CategoryMetadataService
from .notifications import NotificationCoordinator, ReleasePublishedContext, create_notification_coordinator
from .release_service import ReleaseService
from .search_indexer import SearchIndexer

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass
class SyncServices:
    """Per-run service graph bound to one session."""

    documents: Any
    metadata: CategoryMetadataService
    authors: AuthorService
    content: DocumentStoreService
    api_specs: ApiSpecService
    images: ImageSyncService


def build_sync_services(
    session: AsyncSession,
    notifier: NotificationCoordinator,
    cache: CacheManager | None = None,
) -> SyncServices:
    indexer = SearchIndexer(cache)
    documents = ContentItemRepository(session, Document)
    releases = ReleaseService(ReleaseRepository(session), TeamRepository(session), session)
    return SyncServices(
        documents=documents,
        metadata=CategoryMetadataService(CategoryMetadataRepository(session), session),
        authors=AuthorService(AuthorRepository(session), session),
        content=DocumentStoreService(
            documents,
            ContentItemRepository(session, BlogPost),
            DocumentChangeRepository(session),
            releases,
            indexer,
            notifier,
            session,
        ),
        api_specs=ApiSpecService(APISpecRepository(session), indexer, session),
        images=ImageSyncService(RepositoryImageRepository(session), session=session),
    )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class RepositorySyncService:
    """Orchestrates sync runs.

    Args:
        session_factory: Returns an async context manager yielding a session
            that commits on success (defaults to the global connection manager)
        fetcher_factory: Builds a SourceFetcher for a Repository row
        services_factory: Builds the per-run services for a session
        notifier: Coordinator used for release and content-update events
        cache: Search cache invalidated after vector updates (defaults to
            a Redis-backed manager on ``REDIS_URL``)
        lock_ttl_seconds: Lease length of the per-repository sync lock
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        fetcher_factory: Callable[[Repository], SourceFetcher] = create_fetcher,
        services_factory: Callable[[AsyncSession], SyncServices] | None = None,
        notifier: NotificationCoordinator | None = None,
        cache: CacheManager | None = None,
        lock_ttl_seconds: int | None = None,
    ):
        self.session_factory = session_factory or pg_connection_manager.get_session
        self.fetcher_factory = fetcher_factory
        self.notifier = notifier or create_notification_coordinator()
        self.cache = cache or create_cache_manager()
        self.services_factory = services_factory or (
            lambda session: build_sync_services(session, self.notifier, self.cache)
        )
        self.lock_ttl_seconds = lock_ttl_seconds or settings.SYNC_LOCK_TTL_SECONDS

    async def sync_repository(self, repository_id: str, triggered_by: str = "manual") -> SyncRunResult:
        """Run one sync for a repository.

        Raises:
            RepositoryNotFoundError: Unknown repository (no SyncLog is written)
            RepositoryDisabledError: Repository is disabled (no SyncLog is written)
            SyncAlreadyRunningError: Another run holds the repository lock
            Exception: Any run-level failure, after the SyncLog and repository
                status were finalized as failed
        """
        lock_token = uuid.uuid4().hex

        async with self.session_factory() as session:
            repositories = RepositoryConfigRepository(session)
            repository = await repositories.get_by_id(repository_id)
            if repository is None:
                raise RepositoryNotFoundError(repository_id)
            if not repository.enabled:
                raise RepositoryDisabledError(repository_id)
            if not await repositories.acquire_sync_lock(repository_id, lock_token, self.lock_ttl_seconds):
                raise SyncAlreadyRunningError(repository_id)
            try:
                sync_log = await SyncLogRepository(session).create(repository_id, triggered_by)
            except Exception:
                await repositories.release_sync_lock(repository_id, lock_token)
                raise
            sync_log_id = sync_log.id
            repository_slug = repository.slug

        sync_metrics.syncs_in_progress.inc()
        started = time.monotonic()
        try:
            with sync_log_context(repository_slug, sync_log_id):
                logger.info(f"Starting sync of {repository_slug} (triggered_by={triggered_by})")
                try:
                    result, pending_releases = await self._run(repository_id, sync_log_id, started)
                except Exception as e:
                    duration_ms = _elapsed_ms(started)
                    logger.error(f"Sync of {repository_slug} failed after {duration_ms}ms: {e}", exc_info=True)
                    await self._record_failure(repository_id, sync_log_id, str(e) or type(e).__name__, duration_ms)
                    sync_metrics.record_sync_finished(repository_slug, SyncStatus.FAILED.value, duration_ms / 1000)
                    raise

                if pending_releases:
                    await self._announce_releases(pending_releases)

                logger.info(
                    f"Sync of {repository_slug} finished in {result.duration_ms}ms: {result.files_added} added, "
                    f"{result.files_changed} changed, {result.files_deleted} deleted, {len(result.errors)} errors"
                )
                sync_metrics.record_sync_finished(repository_slug, result.status, result.duration_ms / 1000)
                sync_metrics.record_content_changes(
                    repository_slug, result.files_added, result.files_changed, result.files_deleted
                )
                return result
        finally:
            sync_metrics.syncs_in_progress.dec()
            await self._release_lock(repository_id, lock_token)

    async def _run(
        self, repository_id: str, sync_log_id: str, started: float
    ) -> tuple[SyncRunResult, list[ReleasePublishedContext]]:
        """Run every phase in one transaction; returns the releases to announce after commit."""
        async with self.session_factory() as session:
            repository = await RepositoryConfigRepository(session).get_by_id(repository_id)
            if repository is None:
                raise RepositoryNotFoundError(repository_id)

            services = self.services_factory(session)
            result, pending_releases = await self._run_phases(repository, services, sync_log_id)

            result.duration_ms = _elapsed_ms(started)
            await SyncLogRepository(session).complete(
                sync_log_id,
                files_added=result.files_added,
                files_changed=result.files_changed,
                files_deleted=result.files_deleted,
                duration_ms=result.duration_ms,
            )
            await RepositoryConfigRepository(session).update_sync_status(repository_id, SyncStatus.SUCCESS)
        return result, pending_releases

    async def _run_phases(
        self, repository: Repository, services: SyncServices, sync_log_id: str
    ) -> tuple[SyncRunResult, list[ReleasePublishedContext]]:
        result = SyncRunResult(repository_id=repository.id, sync_log_id=sync_log_id, status=SyncStatus.SUCCESS.value)
        slug = repository.slug

        async with self.fetcher_factory(repository) as fetcher:
            fetched = await fetcher.fetch_files()
            result.errors.extend(fetched.errors)
            sync_metrics.record_item_errors(slug, "fetch", len(fetched.errors))

            meta_files = [file for file in fetched.documents if is_meta_file(file.path)]
            author_files = [file for file in fetched.documents if is_author_file(file.path)]
            content_files = [file for file in fetched.documents if is_markdown_file(file.path)]
            logger.info(
                f"Fetched {len(content_files)} content, {len(meta_files)} metadata, "
                f"{len(author_files)} author and {len(fetched.api_specs)} API spec files"
            )

            metadata = await services.metadata.store_metadata(repository.id, meta_files)
            authors = await services.authors.store_authors(author_files)
            content = await services.content.store_documents(
                repository, content_files, sync_log_id, fetched.failed_paths
            )
            specs = await services.api_specs.store_api_specs(repository, fetched.api_specs, fetched.failed_paths)

            images = None
            if repository.sync_images:
                images = await services.images.sync_images(repository, fetcher)

        surviving_slugs = await services.documents.list_slugs(repository.id)
        deleted_categories = await services.metadata.cleanup_categories(repository.id, metadata, surviving_slugs)

        for phase, phase_result in (
            ("metadata", metadata),
            ("authors", authors),
            ("content", content),
            ("api_specs", specs),
            ("images", images),
        ):
            if phase_result is None:
                continue
            result.errors.extend(phase_result.errors)
            sync_metrics.record_item_errors(slug, phase, len(phase_result.errors))

        result.files_added = content.total_added
        result.files_changed = content.total_updated
        result.files_deleted = content.total_deleted
        result.categories_deleted = len(deleted_categories)
        result.details = {
            "categories": {"created": metadata.created, "updated": metadata.updated, "deleted": len(deleted_categories)},
            "authors": {"created": authors.created, "updated": authors.updated},
            "content": {
                "docs_added": content.docs_added,
                "docs_updated": content.docs_updated,
                "docs_deleted": content.docs_deleted,
                "blogs_added": content.blogs_added,
                "blogs_updated": content.blogs_updated,
                "blogs_deleted": content.blogs_deleted,
                "skipped": content.skipped,
                "releases_created": content.releases_created,
                "releases_updated": content.releases_updated,
            },
            "api_specs": {
                "added": specs.total_added,
                "updated": specs.total_updated,
                "deleted": specs.total_deleted,
                "skipped": specs.total_skipped,
            },
        }
        if images is not None:
            result.details["images"] = {
                "synced": images.synced,
                "updated": images.updated,
                "deleted": images.deleted,
                "skipped": images.skipped,
            }
        return result, content.pending_releases

    async def _announce_releases(self, pending: list[ReleasePublishedContext]) -> int:
        """Send "release published" notifications for committed releases.

        ``notified_at`` is written in its own session after a successful
        delivery. A release whose delivery failed stays unmarked and is
        announced again by the next run.
        """
        notified = 0
        for context in pending:
            try:
                notification = await self.notifier.notify_release_published(context)
            except Exception as e:
                logger.warning(f"Release {context.version} notification failed: {e}")
                continue
            if not notification.success:
                logger.warning(f"Release {context.version} was not delivered to any channel; will retry next sync")
                continue
            try:
                async with self.session_factory() as session:
                    await ReleaseRepository(session).mark_notified(context.release_id)
            except Exception as e:
                logger.error(f"Failed to mark release {context.release_id} as notified: {e}")
                continue
            notified += 1
        logger.info(f"Announced {notified} of {len(pending)} new release(s)")
        return notified

    async def _record_failure(self, repository_id: str, sync_log_id: str, error: str, duration_ms: int) -> None:
        try:
            async with self.session_factory() as session:
                await SyncLogRepository(session).fail(sync_log_id, error, duration_ms)
                await RepositoryConfigRepository(session).update_sync_status(repository_id, SyncStatus.FAILED)
        except Exception as e:
            logger.error(f"Failed to record sync failure for sync log {sync_log_id}: {e}")

    async def _release_lock(self, repository_id: str, lock_token: str) -> None:
        try:
            async with self.session_factory() as session:
                await RepositoryConfigRepository(session).release_sync_lock(repository_id, lock_token)
        except Exception as e:
            logger.error(f"Failed to release sync lock for repository {repository_id}: {e}")
