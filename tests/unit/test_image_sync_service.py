"""Unit tests for repository image mirroring."""

from unittest.mock import AsyncMock

import pytest

from packages.docshub.dtos.sync import SourceImage
from packages.docshub.exceptions import SourceFetchError
from packages.syncworker.services.image_sync_service import ImageSyncService, get_mime_type, local_image_path

from .fakes import FakeRepositoryImageRepository


def _fetcher(images: list[SourceImage], payloads: dict[str, bytes] | None = None) -> AsyncMock:
    payloads = payloads or {}
    fetcher = AsyncMock()
    fetcher.list_images.return_value = images
    fetcher.download_image.side_effect = lambda image: payloads.get(image.path, b"data-" + image.sha.encode())
    return fetcher


@pytest.fixture()
def images():
    return FakeRepositoryImageRepository()


@pytest.fixture()
def service(images, tmp_path):
    return ImageSyncService(images, image_root=tmp_path)


def test_local_image_path():
    assert local_image_path("handbook", "docs/_img/a.png") == "img/handbook/docs/_img/a.png"


@pytest.mark.parametrize(
    ("path", "mime"),
    [("a.PNG", "image/png"), ("a.jpeg", "image/jpeg"), ("a.svg", "image/svg+xml"), ("a.tiff", "application/octet-stream")],
)
def test_get_mime_type(path, mime):
    assert get_mime_type(path) == mime


class TestSyncImages:
    @pytest.mark.asyncio()
    async def test_new_images_are_written(self, service, images, tmp_path, make_repository):
        fetcher = _fetcher([SourceImage("docs/_img/a.png", "sha1", 3)], {"docs/_img/a.png": b"PNG"})

        result = await service.sync_images(make_repository(), fetcher)

        assert result.synced == 1
        assert (tmp_path / "img/handbook/docs/_img/a.png").read_bytes() == b"PNG"
        record = images.images["docs/_img/a.png"]
        assert record.local_path == "img/handbook/docs/_img/a.png"
        assert record.mime_type == "image/png"
        assert record.size == 3

    @pytest.mark.asyncio()
    async def test_unchanged_sha_skips_download(self, service, images, make_repository):
        repository = make_repository()
        await service.sync_images(repository, _fetcher([SourceImage("docs/a.png", "sha1")]))
        fetcher = _fetcher([SourceImage("docs/a.png", "sha1")])

        result = await service.sync_images(repository, fetcher)

        assert result.skipped == 1
        fetcher.download_image.assert_not_awaited()
        assert images.touched == ["docs/a.png"]

    @pytest.mark.asyncio()
    async def test_changed_sha_is_downloaded_again(self, service, tmp_path, make_repository):
        repository = make_repository()
        await service.sync_images(repository, _fetcher([SourceImage("docs/a.png", "sha1")]))

        result = await service.sync_images(repository, _fetcher([SourceImage("docs/a.png", "sha2")]))

        assert result.updated == 1
        assert (tmp_path / "img/handbook/docs/a.png").read_bytes() == b"data-sha2"

    @pytest.mark.asyncio()
    async def test_removed_images_are_deleted(self, service, images, tmp_path, make_repository):
        repository = make_repository()
        await service.sync_images(repository, _fetcher([SourceImage("docs/a.png", "sha1")]))

        result = await service.sync_images(repository, _fetcher([]))

        assert result.deleted == 1
        assert images.images == {}
        assert not (tmp_path / "img/handbook/docs/a.png").exists()

    @pytest.mark.asyncio()
    async def test_listing_failure_deletes_nothing(self, service, images, make_repository):
        repository = make_repository()
        await service.sync_images(repository, _fetcher([SourceImage("docs/a.png", "sha1")]))
        fetcher = AsyncMock()
        fetcher.list_images.side_effect = SourceFetchError("tree unavailable")

        result = await service.sync_images(repository, fetcher)

        assert len(result.errors) == 1
        assert result.deleted == 0
        assert "docs/a.png" in images.images

    @pytest.mark.asyncio()
    async def test_download_failure_is_recorded(self, service, make_repository):
        fetcher = _fetcher([SourceImage("docs/a.png", "sha1"), SourceImage("docs/b.png", "sha2")])
        fetcher.download_image.side_effect = [RuntimeError("timeout"), b"B"]

        result = await service.sync_images(make_repository(), fetcher)

        assert result.synced == 1
        assert len(result.errors) == 1
        assert "docs/a.png" in result.errors[0]

    @pytest.mark.asyncio()
    async def test_path_escaping_image_root_is_rejected(self, service, make_repository):
        result = await service.sync_images(make_repository(), _fetcher([SourceImage("docs/../../../../etc/x.png", "s")]))

        assert result.synced == 0
        assert "escapes" in result.errors[0]


@pytest.mark.asyncio()
async def test_cleanup_repository_images(service, images, tmp_path, make_repository):
    repository = make_repository()
    await service.sync_images(repository, _fetcher([SourceImage("docs/a.png", "1"), SourceImage("blog/b.png", "2")]))

    removed = await service.cleanup_repository_images(repository)

    assert removed == 2
    assert images.images == {}
    assert not (tmp_path / "img/handbook/blog/b.png").exists()
