"""Data transfer objects passed between fetchers, parsers and services."""

from .sync import (
    ApiSpecMetadata,
    ApiSpecSyncResult,
    AuthorProfile,
    AuthorSyncResult,
    CategoryNode,
    ContentChange,
    ContentSyncResult,
    FetchResult,
    ImageSyncResult,
    MetadataSyncResult,
    NotificationResult,
    ParsedDocument,
    ReleaseBlock,
    SourceFile,
    SourceImage,
    SyncRunResult,
)

__all__ = [
    "ApiSpecMetadata",
    "ApiSpecSyncResult",
    "AuthorProfile",
    "AuthorSyncResult",
    "CategoryNode",
    "ContentChange",
    "ContentSyncResult",
    "FetchResult",
    "ImageSyncResult",
    "MetadataSyncResult",
    "NotificationResult",
    "ParsedDocument",
    "ReleaseBlock",
    "SourceFile",
    "SourceImage",
    "SyncRunResult",
]
