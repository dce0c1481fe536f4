"""Data transfer objects for the repository sync pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from packages.docshub.database.models import ChangeType, DocumentType


@dataclass(frozen=True)
class SourceFile:
    """A text file fetched from a source repository.

    Attributes:
        path: Repository-relative path without a leading slash
        content: Decoded file content
    """

    path: str
    content: str


@dataclass
class FetchResult:
    """Output of a fetcher: content/metadata/author files and API spec files.

    ``failed_paths`` were listed but could not be downloaded. They still exist
    upstream, so reconciliation must keep their stored rows.
    """

    documents: list[SourceFile] = field(default_factory=list)
    api_specs: list[SourceFile] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    failed_paths: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class SourceImage:
    """An image listed by the source, with the source control object hash."""

    path: str
    sha: str
    size: int = 0


@dataclass(frozen=True)
class ReleaseBlock:
    version: str
    teams: tuple[str, ...]
    content: str


@dataclass
class ParsedDocument:
    """Normalized projection of one markdown file."""

    file_path: str
    file_name: str
    title: str
    slug: str
    content: str
    excerpt: str
    category: str | None
    tags: list[str]
    author: str | None
    published_at: datetime | None
    is_draft: bool
    restricted: bool
    restricted_roles: list[str]
    source_hash: str
    document_type: DocumentType
    releases: list[ReleaseBlock] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.source_hash) != 64:
            raise ValueError(f"source_hash must be a SHA-256 hex digest, got: {self.source_hash!r}")

    def to_fields(self) -> dict[str, Any]:
        """Column values for a Document/BlogPost row."""
        return {
            "file_path": self.file_path,
            "file_name": self.file_name,
            "title": self.title,
            "slug": self.slug,
            "content": self.content,
            "excerpt": self.excerpt,
            "category": self.category,
            "tags": list(self.tags),
            "author": self.author,
            "published_at": self.published_at,
            "is_draft": self.is_draft,
            "restricted": self.restricted,
            "restricted_roles": list(self.restricted_roles),
            "source_hash": self.source_hash,
        }


@dataclass(frozen=True)
class CategoryNode:
    slug: str
    title: str
    icon: str | None
    description: str | None
    parent_slug: str | None
    level: int
    order: int
    source_meta_path: str


@dataclass(frozen=True)
class AuthorProfile:
    email: str
    name: str
    title: str | None = None
    bio: str | None = None
    avatar: str | None = None
    linkedin: str | None = None
    github: str | None = None
    website: str | None = None
    location: str | None = None
    joined_date: str | None = None

    def to_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "bio": self.bio,
            "avatar": self.avatar,
            "linkedin": self.linkedin,
            "github": self.github,
            "website": self.website,
            "location": self.location,
            "joined_date": self.joined_date,
        }


@dataclass(frozen=True)
class ApiSpecMetadata:
    name: str
    slug: str
    version: str
    description: str | None
    category: str


@dataclass(frozen=True)
class ContentChange:
    """One pending DocumentChange row."""

    change_type: ChangeType
    document_type: DocumentType
    file_path: str
    title: str | None
    old_hash: str | None = None
    new_hash: str | None = None


@dataclass
class ContentSyncResult:
    docs_added: int = 0
    docs_updated: int = 0
    docs_deleted: int = 0
    blogs_added: int = 0
    blogs_updated: int = 0
    blogs_deleted: int = 0
    skipped: int = 0
    releases_created: int = 0
    releases_updated: int = 0
    # ReleasePublishedContext of releases still to be announced
    pending_releases: list[Any] = field(default_factory=list)
    changes: list[ContentChange] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_added(self) -> int:
        return self.docs_added + self.blogs_added

    @property
    def total_updated(self) -> int:
        return self.docs_updated + self.blogs_updated

    @property
    def total_deleted(self) -> int:
        return self.docs_deleted + self.blogs_deleted


@dataclass
class MetadataSyncResult:
    created: int = 0
    updated: int = 0
    # slugs declared by the _meta.json files parsed this run
    processed_slugs: set[str] = field(default_factory=set)
    # _meta.json paths that were parsed successfully
    parsed_meta_paths: set[str] = field(default_factory=set)
    errors: list[str] = field(default_factory=list)


@dataclass
class AuthorSyncResult:
    created: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ApiSpecSyncResult:
    total_added: int = 0
    total_updated: int = 0
    total_deleted: int = 0
    total_skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ImageSyncResult:
    synced: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class NotificationResult:
    """Outcome of delivering one event to every channel."""

    success: bool
    results: list[dict[str, Any]] = field(default_factory=list)
    total_sent: int = 0
    total_failed: int = 0


@dataclass
class SyncRunResult:
    """Summary of a finished sync run."""

    repository_id: str
    sync_log_id: str
    status: str
    files_added: int = 0
    files_changed: int = 0
    files_deleted: int = 0
    duration_ms: int = 0
    categories_deleted: int = 0
    errors: list[str] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)
