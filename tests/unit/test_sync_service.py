"""Unit tests for the repository sync orchestrator."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from packages.docshub.database.models import SyncStatus
from packages.docshub.dtos.sync import FetchResult, NotificationResult, SourceFile
from packages.docshub.exceptions import (
    RepositoryDisabledError,
    RepositoryNotFoundError,
    SourceFetchError,
    SyncAlreadyRunningError,
)
from packages.syncworker.services import sync_service as sync_service_module
from packages.syncworker.services.api_spec_service import ApiSpecService
from packages.syncworker.services.cache_manager import CacheManager
from packages.syncworker.services.author_service import AuthorService
from packages.syncworker.services.document_store import DocumentStoreService
from packages.syncworker.services.image_sync_service import ImageSyncService
from packages.syncworker.services.metadata_service import CategoryMetadataService
from packages.syncworker.services.notifications import NotificationCoordinator
from packages.syncworker.services.release_service import ReleaseService
from packages.syncworker.services.search_indexer import SearchIndexer
from packages.syncworker.services.sync_service import RepositorySyncService, SyncServices

from .fakes import (
    FakeAPISpecRepository,
    FakeAuthorRepository,
    FakeCategoryMetadataRepository,
    FakeContentItemRepository,
    FakeDocumentChangeRepository,
    FakeReleaseRepository,
    FakeRepositoryImageRepository,
    FakeTeamRepository,
)


class FakeFetcher:
    def __init__(self) -> None:
        self.result = FetchResult()
        self.error: Exception | None = None
        self.closed = False

    async def __aenter__(self) -> "FakeFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def fetch_files(self) -> FetchResult:
        if self.error is not None:
            raise self.error
        return self.result

    async def list_images(self) -> list:
        return []


def _docs(contents: dict[str, str]) -> list[SourceFile]:
    return [SourceFile(path=path, content=content) for path, content in contents.items()]


@pytest.fixture()
def notifier():
    notifier = AsyncMock(spec=NotificationCoordinator)
    notifier.notify_content_update.return_value = NotificationResult(success=True, total_sent=1)
    notifier.notify_release_published.return_value = NotificationResult(success=True, total_sent=1)
    return notifier


@pytest.fixture()
def services(notifier, tmp_path):
    documents = FakeContentItemRepository()
    indexer = SearchIndexer()
    return SyncServices(
        documents=documents,
        metadata=CategoryMetadataService(FakeCategoryMetadataRepository()),
        authors=AuthorService(FakeAuthorRepository()),
        content=DocumentStoreService(
            documents,
            FakeContentItemRepository(),
            FakeDocumentChangeRepository(),
            ReleaseService(FakeReleaseRepository(), FakeTeamRepository(["crm"])),
            indexer,
            notifier,
        ),
        api_specs=ApiSpecService(FakeAPISpecRepository(), indexer),
        images=ImageSyncService(FakeRepositoryImageRepository(), image_root=tmp_path),
    )


@pytest.fixture()
def repository(make_repository):
    return make_repository()


@pytest.fixture()
def repo_config(repository):
    """Patched RepositoryConfigRepository returning ``repository``."""
    instance = MagicMock()
    instance.get_by_id = AsyncMock(return_value=repository)
    instance.acquire_sync_lock = AsyncMock(return_value=True)
    instance.release_sync_lock = AsyncMock()
    instance.update_sync_status = AsyncMock()
    with patch.object(sync_service_module, "RepositoryConfigRepository", return_value=instance):
        yield instance


@pytest.fixture()
def sync_logs():
    instance = MagicMock()
    instance.create = AsyncMock(return_value=SimpleNamespace(id="log-1"))
    instance.complete = AsyncMock()
    instance.fail = AsyncMock()
    with patch.object(sync_service_module, "SyncLogRepository", return_value=instance):
        yield instance


@pytest.fixture()
def release_marks(services):
    """Patched ReleaseRepository used for post-commit notified_at writes."""
    releases = services.content.releases.releases
    with patch.object(sync_service_module, "ReleaseRepository", return_value=releases):
        yield releases


@pytest.fixture()
def fetcher():
    return FakeFetcher()


@pytest.fixture()
def sync_service(session_factory, fetcher, services, notifier):
    return RepositorySyncService(
        session_factory=session_factory,
        fetcher_factory=lambda repository: fetcher,
        services_factory=lambda session: services,
        notifier=notifier,
        lock_ttl_seconds=60,
    )


class TestSyncRepository:
    @pytest.mark.asyncio()
    async def test_successful_run_counts_changes(self, sync_service, fetcher, repo_config, sync_logs):
        fetcher.result = FetchResult(
            documents=_docs({"docs/keep.md": "v1", "docs/old.md": "old", "docs/_meta.json": json.dumps({"keep": "Keep"})})
        )
        await sync_service.sync_repository("repo-1")

        fetcher.result = FetchResult(
            documents=_docs(
                {
                    "docs/keep.md": "v2",
                    "docs/new-a.md": "a",
                    "docs/new-b.md": "b",
                    "blog/new-post.md": "post",
                }
            )
        )
        result = await sync_service.sync_repository("repo-1", triggered_by="manual")

        assert result.status == SyncStatus.SUCCESS.value
        assert (result.files_added, result.files_changed, result.files_deleted) == (3, 1, 1)
        assert result.errors == []
        sync_logs.complete.assert_awaited_with(
            "log-1",
            files_added=3,
            files_changed=1,
            files_deleted=1,
            duration_ms=result.duration_ms,
        )
        repo_config.update_sync_status.assert_awaited_with("repo-1", SyncStatus.SUCCESS)
        sync_logs.create.assert_awaited_with("repo-1", "manual")
        assert fetcher.closed is True

    @pytest.mark.asyncio()
    async def test_lock_is_acquired_and_released(self, sync_service, repo_config, sync_logs):
        await sync_service.sync_repository("repo-1")

        token = repo_config.acquire_sync_lock.await_args.args[1]
        repo_config.acquire_sync_lock.assert_awaited_once_with("repo-1", token, 60)
        repo_config.release_sync_lock.assert_awaited_once_with("repo-1", token)

    @pytest.mark.asyncio()
    async def test_item_errors_do_not_fail_the_run(self, sync_service, fetcher, repo_config, sync_logs):
        fetcher.result = FetchResult(
            documents=_docs({"docs/a.md": "a", "authors/bad.json": "{"}),
            errors=["Failed to fetch docs/b.md: 500"],
        )

        result = await sync_service.sync_repository("repo-1")

        assert result.status == SyncStatus.SUCCESS.value
        assert result.files_added == 1
        assert len(result.errors) == 2
        sync_logs.fail.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_fetch_failure_finalizes_as_failed(self, sync_service, fetcher, repo_config, sync_logs):
        fetcher.error = SourceFetchError("Failed to fetch GitHub tree: 404 Not Found", status_code=404)

        with pytest.raises(SourceFetchError):
            await sync_service.sync_repository("repo-1")

        sync_logs.fail.assert_awaited_once()
        log_id, error, duration_ms = sync_logs.fail.await_args.args
        assert log_id == "log-1"
        assert "404" in error
        assert duration_ms >= 0
        sync_logs.complete.assert_not_awaited()
        repo_config.update_sync_status.assert_awaited_once_with("repo-1", SyncStatus.FAILED)
        repo_config.release_sync_lock.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_failure_while_recording_failure_still_raises_original(
        self, sync_service, fetcher, repo_config, sync_logs
    ):
        fetcher.error = SourceFetchError("tree unavailable")
        sync_logs.fail.side_effect = RuntimeError("db gone")

        with pytest.raises(SourceFetchError, match="tree unavailable"):
            await sync_service.sync_repository("repo-1")

        repo_config.release_sync_lock.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_unknown_repository(self, sync_service, repo_config, sync_logs):
        repo_config.get_by_id.return_value = None

        with pytest.raises(RepositoryNotFoundError):
            await sync_service.sync_repository("missing")

        sync_logs.create.assert_not_awaited()
        repo_config.acquire_sync_lock.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_disabled_repository(self, sync_service, repository, repo_config, sync_logs):
        repository.enabled = False

        with pytest.raises(RepositoryDisabledError):
            await sync_service.sync_repository("repo-1")

        sync_logs.create.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_lock_held_by_another_run(self, sync_service, repo_config, sync_logs):
        repo_config.acquire_sync_lock.return_value = False

        with pytest.raises(SyncAlreadyRunningError):
            await sync_service.sync_repository("repo-1")

        sync_logs.create.assert_not_awaited()
        repo_config.release_sync_lock.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_orphaned_categories_removed_after_content_deletion(
        self, sync_service, fetcher, services, repo_config, sync_logs
    ):
        meta = json.dumps({"eway": "eWAY", "pos": "POS"})
        fetcher.result = FetchResult(
            documents=_docs({"docs/_meta.json": meta, "docs/eway/a.md": "a", "docs/pos/b.md": "b"})
        )
        first = await sync_service.sync_repository("repo-1")
        assert first.categories_deleted == 0

        fetcher.result = FetchResult(documents=_docs({"docs/_meta.json": meta, "docs/eway/a.md": "a"}))
        second = await sync_service.sync_repository("repo-1")

        assert second.files_deleted == 1
        assert second.categories_deleted == 1
        assert services.metadata.categories.slugs("repo-1") == {"eway"}

    @pytest.mark.asyncio()
    async def test_images_only_synced_when_enabled(self, sync_service, repository, services, repo_config, sync_logs):
        result = await sync_service.sync_repository("repo-1")
        assert "images" not in result.details

        repository.sync_images = True
        result = await sync_service.sync_repository("repo-1")
        assert result.details["images"]["synced"] == 0

    @pytest.mark.asyncio()
    async def test_api_specs_are_stored(self, sync_service, fetcher, services, repo_config, sync_logs):
        fetcher.result = FetchResult(
            api_specs=_docs({"api-specs/orders/orders.yaml": "info:\n  title: Orders\n  version: 1.0.0\n"})
        )

        result = await sync_service.sync_repository("repo-1")

        assert result.details["api_specs"]["added"] == 1
        assert ("orders", "1.0.0") in services.api_specs.specs.specs

    @pytest.mark.asyncio()
    async def test_file_that_failed_to_download_is_not_deleted(self, sync_service, fetcher, repo_config, sync_logs):
        fetcher.result = FetchResult(documents=_docs({"docs/a.md": "a", "docs/b.md": "b"}))
        await sync_service.sync_repository("repo-1")

        fetcher.result = FetchResult(
            documents=_docs({"docs/a.md": "a"}),
            errors=["Failed to fetch docs/b.md: 500"],
            failed_paths={"docs/b.md"},
        )
        result = await sync_service.sync_repository("repo-1")

        assert result.files_deleted == 0
        assert result.errors == ["Failed to fetch docs/b.md: 500"]


class TestCategoryTree:
    @pytest.mark.asyncio()
    async def test_nested_content_root_keeps_live_categories(
        self, sync_service, fetcher, services, repo_config, sync_logs
    ):
        fetcher.result = FetchResult(
            documents=_docs(
                {
                    "content/docs/_meta.json": json.dumps({"eway": "eWAY"}),
                    "content/docs/eway/_meta.json": json.dumps({"api": "API"}),
                    "content/docs/eway/api/setup.md": "setup",
                }
            )
        )

        first = await sync_service.sync_repository("repo-1")
        second = await sync_service.sync_repository("repo-1")

        assert first.categories_deleted == 0
        assert second.categories_deleted == 0
        assert services.metadata.categories.slugs("repo-1") == {"eway", "eway/api"}

    @pytest.mark.asyncio()
    async def test_base_path_does_not_shift_the_tree(
        self, sync_service, fetcher, repository, services, repo_config, sync_logs
    ):
        repository.base_path = "docs"
        fetcher.result = FetchResult(
            documents=_docs(
                {
                    "docs/_meta.json": json.dumps({"eway": "eWAY"}),
                    "docs/eway/_meta.json": json.dumps({"api": "API"}),
                    "docs/eway/api/setup.md": "setup",
                }
            )
        )

        result = await sync_service.sync_repository("repo-1")

        assert result.categories_deleted == 0
        category = services.metadata.categories.categories[("repo-1", "eway/api")]
        assert (category.level, category.parent_slug) == (1, "eway")


RELEASE_DOC = ":::release\nteams: crm\nversion: 2024.01.15.1\n---\n- Feature A\n:::\n"


class TestReleaseAnnouncements:
    @pytest.mark.asyncio()
    async def test_release_announced_once_after_commit(
        self, sync_service, fetcher, notifier, release_marks, repo_config, sync_logs
    ):
        async def announce(context):
            assert sync_logs.complete.await_count >= 1
            return NotificationResult(success=True, total_sent=1)

        notifier.notify_release_published.side_effect = announce
        fetcher.result = FetchResult(documents=_docs({"docs/releases.md": RELEASE_DOC}))

        await sync_service.sync_repository("repo-1")
        await sync_service.sync_repository("repo-1")

        notifier.notify_release_published.assert_awaited_once()
        (release,) = release_marks.releases.values()
        assert release.notified_at is not None

    @pytest.mark.asyncio()
    async def test_failed_run_does_not_announce_release(
        self, sync_service, fetcher, notifier, release_marks, repo_config, sync_logs
    ):
        fetcher.result = FetchResult(documents=_docs({"docs/releases.md": RELEASE_DOC}))
        sync_logs.complete.side_effect = RuntimeError("db gone")

        with pytest.raises(RuntimeError, match="db gone"):
            await sync_service.sync_repository("repo-1")

        notifier.notify_release_published.assert_not_awaited()

        sync_logs.complete.side_effect = None
        await sync_service.sync_repository("repo-1")

        notifier.notify_release_published.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_undelivered_release_is_retried_next_run(
        self, sync_service, fetcher, notifier, release_marks, repo_config, sync_logs
    ):
        notifier.notify_release_published.side_effect = [
            NotificationResult(success=False),
            NotificationResult(success=True, total_sent=1),
        ]
        fetcher.result = FetchResult(documents=_docs({"docs/releases.md": RELEASE_DOC}))

        await sync_service.sync_repository("repo-1")
        (release,) = release_marks.releases.values()
        assert release.notified_at is None

        await sync_service.sync_repository("repo-1")

        assert notifier.notify_release_published.await_count == 2
        assert release.notified_at is not None


def test_default_service_graph_invalidates_search_cache(session_factory, mock_session):
    service = RepositorySyncService(session_factory=session_factory)

    graph = service.services_factory(mock_session)

    assert isinstance(service.cache, CacheManager)
    assert graph.content.indexer.cache is service.cache
    assert graph.api_specs.indexer.cache is service.cache
