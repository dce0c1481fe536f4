"""
Image mirroring from source repositories into local storage.

Images are written to ``<IMAGE_ROOT>/img/<repository slug>/<repository path>``.
Rendered content links to that layout, so it must stay stable. The source
control object hash (``sha``) decides whether an image is downloaded again.
"""

import asyncio
import logging
import posixpath
from pathlib import Path
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from packages.docshub.config import settings
from packages.docshub.connectors.base import SourceFetcher
from packages.docshub.database.models import Repository
from packages.docshub.database.postgres_database import savepoint
from packages.docshub.dtos.sync import ImageSyncResult, SourceImage
from packages.docshub.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    ".bmp": "image/bmp",
}


def get_mime_type(path: str) -> str:
    return MIME_TYPES.get(posixpath.splitext(path)[1].lower(), "application/octet-stream")


def local_image_path(repository_slug: str, file_path: str) -> str:
    """Mirror path relative to IMAGE_ROOT, e.g. ``img/handbook/docs/_img/a.png``."""
    return posixpath.join("img", repository_slug, file_path.lstrip("/"))


def _write_file(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


def _remove_file(target: Path) -> None:
    target.unlink(missing_ok=True)


class ImageSyncService:
    """Mirrors a repository's images and tracks them in repository_images."""

    def __init__(self, images: Any, image_root: Path | None = None, session: AsyncSession | None = None):
        self.images = images
        self.image_root = Path(image_root or settings.IMAGE_ROOT)
        self.session = session

    def _resolve(self, local_path: str) -> Path:
        root = self.image_root.resolve()
        target = (root / local_path).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"Image path escapes the image root: {local_path}")
        return target

    async def sync_images(self, repository: Repository, fetcher: SourceFetcher) -> ImageSyncResult:
        result = ImageSyncResult()
        try:
            source_images = await fetcher.list_images()
        except SourceFetchError as e:
            # without a listing nothing can be judged orphaned
            message = f"Failed to list images: {e}"
            logger.error(message)
            result.errors.append(message)
            return result

        existing = {image.file_path: image for image in await self.images.list_for_repository(repository.id)}
        logger.info(f"Syncing {len(source_images)} images ({len(existing)} tracked)")

        for source_image in source_images:
            current = existing.get(source_image.path)
            try:
                async with savepoint(self.session):
                    outcome = await self._sync_image(repository, fetcher, source_image, current)
            except Exception as e:
                message = f"Failed to sync image {source_image.path}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue
            if outcome == "synced":
                result.synced += 1
            elif outcome == "updated":
                result.updated += 1
            else:
                result.skipped += 1

        fetched_paths = {image.path for image in source_images}
        for path, image in existing.items():
            if path in fetched_paths:
                continue
            try:
                async with savepoint(self.session):
                    await self.images.delete(image)
            except Exception as e:
                message = f"Failed to delete image record {path}: {e}"
                logger.error(message)
                result.errors.append(message)
                continue
            result.deleted += 1
            await self._unlink(image.local_path)

        logger.info(
            f"Images: {result.synced} new, {result.updated} updated, {result.deleted} deleted, "
            f"{result.skipped} unchanged, {len(result.errors)} errors"
        )
        return result

    async def _sync_image(
        self,
        repository: Repository,
        fetcher: SourceFetcher,
        source_image: SourceImage,
        current: Any | None,
    ) -> str:
        if current is not None and current.sha == source_image.sha:
            await self.images.touch(current)
            return "skipped"

        local_path = local_image_path(repository.slug, source_image.path)
        target = self._resolve(local_path)
        data = await fetcher.download_image(source_image)
        await asyncio.to_thread(_write_file, target, data)

        fields = {
            "local_path": local_path,
            "sha": source_image.sha,
            "size": len(data),
            "mime_type": get_mime_type(source_image.path),
        }
        if current is None:
            await self.images.create(repository.id, {"file_path": source_image.path, **fields})
            return "synced"
        await self.images.update(current, fields)
        return "updated"

    async def _unlink(self, local_path: str) -> None:
        try:
            await asyncio.to_thread(_remove_file, self._resolve(local_path))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not remove image file {local_path}: {e}")

    async def cleanup_repository_images(self, repository: Repository) -> int:
        """Remove every mirrored image of a repository, records and files."""
        removed = 0
        for image in await self.images.list_for_repository(repository.id):
            await self.images.delete(image)
            await self._unlink(image.local_path)
            removed += 1
        logger.info(f"Removed {removed} images for repository {repository.slug}")
        return removed
