"""Unit tests for the scheduled sync dispatcher."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from packages.docshub.dtos.sync import SyncRunResult
from packages.docshub.exceptions import SourceFetchError, SyncAlreadyRunningError
from packages.syncworker.tasks import sync_dispatcher
from packages.syncworker.tasks.sync_dispatcher import is_due, process_scheduled_syncs

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


class TestIsDue:
    def test_never_synced(self, make_repository):
        assert is_due(make_repository(last_sync_at=None), NOW)

    def test_interval_elapsed(self, make_repository):
        assert is_due(make_repository(sync_frequency=600, last_sync_at=NOW - timedelta(seconds=600)), NOW)

    def test_interval_not_elapsed(self, make_repository):
        assert not is_due(make_repository(sync_frequency=600, last_sync_at=NOW - timedelta(seconds=599)), NOW)

    def test_manual_only(self, make_repository):
        assert not is_due(make_repository(sync_frequency=0, last_sync_at=None), NOW)

    def test_naive_timestamps_are_utc(self, make_repository):
        naive = (NOW - timedelta(hours=2)).replace(tzinfo=None)
        assert is_due(make_repository(sync_frequency=3600, last_sync_at=naive), NOW)


@pytest.fixture()
def scheduled(session_factory):
    """Patch the scheduled-repository lookup; set ``.repositories`` in tests."""
    manager = MagicMock()
    manager.get_session = session_factory
    config = MagicMock()
    config.list_scheduled = AsyncMock(return_value=[])
    with (
        patch.object(sync_dispatcher, "pg_connection_manager", manager),
        patch.object(sync_dispatcher, "RepositoryConfigRepository", return_value=config),
    ):
        yield config


def _result(repository_id: str) -> SyncRunResult:
    return SyncRunResult(repository_id=repository_id, sync_log_id=f"log-{repository_id}", status="success")


class TestProcessScheduledSyncs:
    @pytest.mark.asyncio()
    async def test_nothing_due(self, scheduled, make_repository):
        scheduled.list_scheduled.return_value = [make_repository(last_sync_at=NOW)]
        service = AsyncMock()

        stats = await process_scheduled_syncs(service, now=NOW)

        assert stats["scheduled_count"] == 1
        assert stats["due_count"] == 0
        service.sync_repository.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_failures_are_isolated(self, scheduled, make_repository):
        scheduled.list_scheduled.return_value = [
            make_repository(id="a", slug="alpha"),
            make_repository(id="b", slug="beta"),
            make_repository(id="c", slug="gamma"),
            make_repository(id="d", slug="delta", last_sync_at=NOW),
        ]

        async def sync(repository_id, triggered_by):
            assert triggered_by == "scheduler"
            if repository_id == "b":
                raise SourceFetchError("tree unavailable")
            if repository_id == "c":
                raise SyncAlreadyRunningError(repository_id)
            return _result(repository_id)

        service = AsyncMock()
        service.sync_repository.side_effect = sync

        stats = await process_scheduled_syncs(service, now=NOW)

        assert stats["due_count"] == 3
        assert stats["succeeded"] == ["alpha"]
        assert stats["failed"] == ["beta"]
        assert stats["skipped"] == ["gamma"]
        assert stats["errors"] == [{"repository": "beta", "error": "tree unavailable"}]
        assert service.sync_repository.await_count == 3
