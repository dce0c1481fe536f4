"""Data-access classes, one per model."""

from .api_spec_repository import APISpecRepository
from .author_repository import AuthorRepository
from .category_metadata_repository import CategoryMetadataRepository
from .content_item_repository import ContentItemRepository
from .release_repository import ReleaseRepository, TeamRepository
from .repository_config_repository import RepositoryConfigRepository
from .repository_image_repository import RepositoryImageRepository
from .sync_log_repository import DocumentChangeRepository, SyncLogRepository

__all__ = [
    "APISpecRepository",
    "AuthorRepository",
    "CategoryMetadataRepository",
    "ContentItemRepository",
    "DocumentChangeRepository",
    "ReleaseRepository",
    "RepositoryConfigRepository",
    "RepositoryImageRepository",
    "SyncLogRepository",
    "TeamRepository",
]
