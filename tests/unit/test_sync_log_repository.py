"""Unit tests for SyncLogRepository and DocumentChangeRepository."""

from unittest.mock import MagicMock

import pytest

from packages.docshub.database.exceptions import DatabaseOperationError, EntityNotFoundError, InvalidStateError
from packages.docshub.database.models import ChangeType, DocumentChange, DocumentType, SyncLog, SyncStatus
from packages.docshub.database.repositories.sync_log_repository import DocumentChangeRepository, SyncLogRepository
from packages.docshub.dtos.sync import ContentChange


@pytest.fixture()
def repo(mock_session):
    return SyncLogRepository(mock_session)


def _returning(mock_session, value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    mock_session.execute.return_value = result


@pytest.mark.asyncio()
async def test_create_starts_in_progress(repo, mock_session):
    sync_log = await repo.create("repo-1", triggered_by="manual")

    assert sync_log.status == SyncStatus.IN_PROGRESS
    assert sync_log.triggered_by == "manual"
    assert sync_log.files_added == 0
    mock_session.add.assert_called_once_with(sync_log)
    mock_session.flush.assert_awaited_once()


@pytest.mark.asyncio()
async def test_create_wraps_errors(repo, mock_session):
    mock_session.flush.side_effect = RuntimeError("insert failed")

    with pytest.raises(DatabaseOperationError):
        await repo.create("repo-1")


@pytest.mark.asyncio()
async def test_complete_records_counts(repo, mock_session):
    sync_log = SyncLog(id="log-1", repository_id="repo-1", status=SyncStatus.IN_PROGRESS)
    _returning(mock_session, sync_log)

    await repo.complete("log-1", files_added=3, files_changed=1, files_deleted=1, duration_ms=1500)

    assert sync_log.status == SyncStatus.SUCCESS
    assert (sync_log.files_added, sync_log.files_changed, sync_log.files_deleted) == (3, 1, 1)
    assert sync_log.duration_ms == 1500
    assert sync_log.completed_at is not None


@pytest.mark.asyncio()
async def test_fail_records_error(repo, mock_session):
    sync_log = SyncLog(id="log-1", repository_id="repo-1", status=SyncStatus.IN_PROGRESS)
    _returning(mock_session, sync_log)

    await repo.fail("log-1", "tree unavailable", 20)

    assert sync_log.status == SyncStatus.FAILED
    assert sync_log.error == "tree unavailable"


@pytest.mark.asyncio()
async def test_finalized_log_cannot_change(repo, mock_session):
    _returning(mock_session, SyncLog(id="log-1", repository_id="repo-1", status=SyncStatus.SUCCESS))

    with pytest.raises(InvalidStateError):
        await repo.fail("log-1", "late failure", 10)


@pytest.mark.asyncio()
async def test_unknown_log(repo, mock_session):
    _returning(mock_session, None)

    with pytest.raises(EntityNotFoundError):
        await repo.complete("missing", 0, 0, 0, 0)


class TestDocumentChangeRepository:
    @pytest.mark.asyncio()
    async def test_create_many(self, mock_session):
        changes = [
            ContentChange(ChangeType.ADDED, DocumentType.DOCUMENT, "docs/a.md", "A", new_hash="1" * 64),
            ContentChange(ChangeType.DELETED, DocumentType.BLOG, "blog/b.md", "B", old_hash="2" * 64),
        ]

        count = await DocumentChangeRepository(mock_session).create_many("log-1", changes)

        assert count == 2
        rows = mock_session.add_all.call_args.args[0]
        assert all(isinstance(row, DocumentChange) for row in rows)
        assert [row.file_path for row in rows] == ["docs/a.md", "blog/b.md"]
        assert {row.sync_log_id for row in rows} == {"log-1"}

    @pytest.mark.asyncio()
    async def test_empty_batch_is_a_no_op(self, mock_session):
        assert await DocumentChangeRepository(mock_session).create_many("log-1", []) == 0
        mock_session.add_all.assert_not_called()

    @pytest.mark.asyncio()
    async def test_errors_propagate(self, mock_session):
        mock_session.flush.side_effect = RuntimeError("constraint")
        changes = [ContentChange(ChangeType.ADDED, DocumentType.DOCUMENT, "docs/a.md", "A")]

        with pytest.raises(DatabaseOperationError):
            await DocumentChangeRepository(mock_session).create_many("log-1", changes)
