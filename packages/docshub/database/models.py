"""
SQLAlchemy declarative models for the docs portal sync pipeline.

These models are used by Alembic for migrations and by the data-access
classes in ``packages.docshub.database.repositories``.

Note on Timestamps:
All DateTime fields use timezone=True so values written by the scheduler
and the sync runs compare correctly regardless of server timezone.

Note on identity:
Content items, images and categories are scoped to one repository and
are keyed by (repository_id, file_path) or (repository_id, category_slug).
Concurrent syncs of different repositories therefore never touch the
same rows.
"""

import enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import TSVECTOR
from sqlalchemy.orm import DeclarativeBase, declared_attr, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


def _uuid() -> str:
    return str(uuid4())


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# Enums
class SourceType(str, enum.Enum):
    """Kind of external repository."""

    GITHUB = "github"
    AZURE = "azure"


class SyncStatus(str, enum.Enum):
    """Lifecycle of a sync run."""

    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"


class ChangeType(str, enum.Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class DocumentType(str, enum.Enum):
    DOCUMENT = "document"
    BLOG = "blog"


class Repository(Base):
    """Configuration of one external content repository."""

    __tablename__ = "repositories"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, unique=True, index=True)
    source = Column(
        Enum(SourceType, name="source_type", values_callable=_enum_values),
        nullable=False,
    )  # type: ignore[var-annotated]

    # GitHub
    owner = Column(String)
    repo = Column(String)
    # Azure DevOps
    organization = Column(String)
    project = Column(String)
    azure_repository_id = Column(String)

    branch = Column(String, nullable=False, default="main")
    base_path = Column(String, nullable=False, default="")
    pat_encrypted = Column(Text)  # base64 Fernet ciphertext

    sync_frequency = Column(Integer, nullable=False, default=0)  # seconds, 0 = manual only
    enabled = Column(Boolean, nullable=False, default=True, index=True)
    sync_images = Column(Boolean, nullable=False, default=False)

    last_sync_at = Column(DateTime(timezone=True))
    last_sync_status = Column(
        Enum(SyncStatus, name="sync_status", values_callable=_enum_values),
    )  # type: ignore[var-annotated]

    # Lease held by the sync run currently working on this repository
    sync_lock_token = Column(String)
    sync_lock_expires_at = Column(DateTime(timezone=True))

    created_by = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    sync_logs = relationship("SyncLog", back_populates="repository", cascade="all, delete-orphan")


class ContentItemMixin:
    """Columns shared by documents and blog posts."""

    id = Column(String, primary_key=True, default=_uuid)
    file_path = Column(String, nullable=False)
    file_name = Column(String, nullable=False)
    title = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    excerpt = Column(Text)
    category = Column(String, index=True)
    tags = Column(JSON, nullable=False, default=list)
    author = Column(String)
    published_at = Column(DateTime(timezone=True))
    is_draft = Column(Boolean, nullable=False, default=False)
    restricted = Column(Boolean, nullable=False, default=False)
    restricted_roles = Column(JSON, nullable=False, default=list)
    source_hash = Column(String(64), nullable=False)
    search_vector = Column(TSVECTOR)
    last_synced_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    @declared_attr
    def repository_id(cls):  # noqa: N805
        return Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr.directive
    def __table_args__(cls):  # noqa: N805
        return (
            UniqueConstraint("repository_id", "file_path", name=f"uq_{cls.__tablename__}_repository_file_path"),
            Index(f"ix_{cls.__tablename__}_search_vector", "search_vector", postgresql_using="gin"),
        )


class Document(ContentItemMixin, Base):
    """A synced documentation page."""

    __tablename__ = "documents"


class BlogPost(ContentItemMixin, Base):
    """A synced blog post."""

    __tablename__ = "blog_posts"


class CategoryMetadata(Base):
    """One node of a repository's documentation category tree."""

    __tablename__ = "category_metadata"

    id = Column(String, primary_key=True, default=_uuid)
    repository_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    category_slug = Column(String, nullable=False)
    title = Column(String, nullable=False)
    icon = Column(String)
    description = Column(Text)
    parent_slug = Column(String)
    level = Column(Integer, nullable=False, default=0)
    order = Column(Integer, nullable=False, default=0)
    # _meta.json that declared this node
    source_meta_path = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("repository_id", "category_slug", name="uq_category_metadata_repo_slug"),)


class APISpec(Base):
    """A versioned API specification."""

    __tablename__ = "api_specs"

    id = Column(String, primary_key=True, default=_uuid)
    repository_id = Column(String, ForeignKey("repositories.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    version = Column(String, nullable=False)
    description = Column(Text)
    category = Column(String, index=True)
    spec_path = Column(String, nullable=False)
    spec_content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)
    search_vector = Column(TSVECTOR)
    created_by = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint("slug", "version", name="uq_api_specs_slug_version"),)


class Author(Base):
    """Author profile keyed by email."""

    __tablename__ = "authors"

    id = Column(String, primary_key=True, default=_uuid)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    title = Column(String)
    bio = Column(Text)
    avatar = Column(String)
    linkedin = Column(String)
    github = Column(String)
    website = Column(String)
    location = Column(String)
    joined_date = Column(String)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())


class RepositoryImage(Base):
    """Binary asset mirrored from a repository into local storage."""

    __tablename__ = "repository_images"

    id = Column(String, primary_key=True, default=_uuid)
    repository_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    file_path = Column(String, nullable=False)
    local_path = Column(String, nullable=False)
    sha = Column(String, nullable=False)  # hash reported by the source control system
    size = Column(Integer, nullable=False, default=0)
    mime_type = Column(String, nullable=False)
    last_synced_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (UniqueConstraint("repository_id", "file_path", name="uq_repository_images_repo_path"),)


class SyncLog(Base):
    """One row per sync run."""

    __tablename__ = "sync_logs"

    id = Column(String, primary_key=True, default=_uuid)
    repository_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        Enum(SyncStatus, name="sync_status", values_callable=_enum_values),
        nullable=False,
        default=SyncStatus.IN_PROGRESS,
    )  # type: ignore[var-annotated]
    triggered_by = Column(String, nullable=False, default="scheduler")
    files_added = Column(Integer, nullable=False, default=0)
    files_changed = Column(Integer, nullable=False, default=0)
    files_deleted = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer)
    error = Column(Text)
    started_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    completed_at = Column(DateTime(timezone=True))

    repository = relationship("Repository", back_populates="sync_logs")
    changes = relationship(
        "DocumentChange", back_populates="sync_log", cascade="all, delete-orphan", order_by="DocumentChange.id"
    )

    __table_args__ = (Index("ix_sync_logs_repository_started_at", "repository_id", "started_at"),)


class DocumentChange(Base):
    """Append-only audit row for one content mutation in a sync run."""

    __tablename__ = "document_changes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_log_id = Column(String, ForeignKey("sync_logs.id", ondelete="CASCADE"), nullable=False, index=True)
    change_type = Column(
        Enum(ChangeType, name="change_type", values_callable=_enum_values), nullable=False
    )  # type: ignore[var-annotated]
    document_type = Column(
        Enum(DocumentType, name="document_type", values_callable=_enum_values), nullable=False
    )  # type: ignore[var-annotated]
    file_path = Column(String, nullable=False)
    title = Column(String)
    old_hash = Column(String(64))
    new_hash = Column(String(64))
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    sync_log = relationship("SyncLog", back_populates="changes")


class Team(Base):
    """A team that can be addressed by release blocks."""

    __tablename__ = "teams"

    id = Column(String, primary_key=True, default=_uuid)
    slug = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)


class Release(Base):
    """A release note extracted from a release block in synced content."""

    __tablename__ = "releases"

    id = Column(String, primary_key=True, default=_uuid)
    repository_id = Column(String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    teams = Column(JSON, nullable=False, default=list)
    file_path = Column(String, nullable=False)
    document_title = Column(String)
    document_slug = Column(String)
    notified_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("repository_id", "file_path", "version", name="uq_releases_repo_path_version"),
    )
