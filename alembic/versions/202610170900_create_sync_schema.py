"""Create the repository sync schema.

Tables:
- repositories: source configuration, schedule, last sync state and the
  per-repository sync lease (sync_lock_token, sync_lock_expires_at)
- documents / blog_posts: synced markdown, unique per (repository_id, file_path)
- category_metadata: category tree nodes from _meta.json files
- api_specs: versioned API specifications, unique per (slug, version)
- authors: profiles keyed by email
- repository_images: mirrored binary assets
- sync_logs / document_changes: run history and per-file audit rows
- teams / releases: release blocks and their notification state

Full text search uses GIN indexes on the tsvector columns.

Revision ID: 202610170900
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

if TYPE_CHECKING:
    from collections.abc import Sequence


revision: str = "202610170900"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

source_type = postgresql.ENUM("github", "azure", name="source_type", create_type=False)
sync_status = postgresql.ENUM("in_progress", "success", "failed", name="sync_status", create_type=False)
change_type = postgresql.ENUM("added", "modified", "deleted", name="change_type", create_type=False)
document_type = postgresql.ENUM("document", "blog", name="document_type", create_type=False)

CONTENT_TABLES = ("documents", "blog_posts")


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if with_updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())
        )
    return columns


def _repository_fk(ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        "repository_id",
        sa.String(),
        sa.ForeignKey("repositories.id", ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    """Create all sync tables."""
    bind = op.get_bind()
    for enum_type in (source_type, sync_status, change_type, document_type):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "repositories",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("source", source_type, nullable=False),
        sa.Column("owner", sa.String()),
        sa.Column("repo", sa.String()),
        sa.Column("organization", sa.String()),
        sa.Column("project", sa.String()),
        sa.Column("azure_repository_id", sa.String()),
        sa.Column("branch", sa.String(), nullable=False, server_default="main"),
        sa.Column("base_path", sa.String(), nullable=False, server_default=""),
        sa.Column("pat_encrypted", sa.Text()),
        sa.Column("sync_frequency", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sync_images", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_sync_at", sa.DateTime(timezone=True)),
        sa.Column("last_sync_status", sync_status),
        sa.Column("sync_lock_token", sa.String()),
        sa.Column("sync_lock_expires_at", sa.DateTime(timezone=True)),
        sa.Column("created_by", sa.String()),
        *_timestamps(),
    )
    op.create_index("ix_repositories_slug", "repositories", ["slug"], unique=True)
    op.create_index("ix_repositories_enabled", "repositories", ["enabled"])

    for table in CONTENT_TABLES:
        op.create_table(
            table,
            sa.Column("id", sa.String(), primary_key=True),
            _repository_fk(),
            sa.Column("file_path", sa.String(), nullable=False),
            sa.Column("file_name", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("slug", sa.String(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("excerpt", sa.Text()),
            sa.Column("category", sa.String()),
            sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
            sa.Column("author", sa.String()),
            sa.Column("published_at", sa.DateTime(timezone=True)),
            sa.Column("is_draft", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("restricted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("restricted_roles", sa.JSON(), nullable=False, server_default="[]"),
            sa.Column("source_hash", sa.String(64), nullable=False),
            sa.Column("search_vector", postgresql.TSVECTOR()),
            sa.Column("last_synced_at", sa.DateTime(timezone=True)),
            *_timestamps(),
            sa.UniqueConstraint("repository_id", "file_path", name=f"uq_{table}_repository_file_path"),
        )
        op.create_index(f"ix_{table}_repository_id", table, ["repository_id"])
        op.create_index(f"ix_{table}_slug", table, ["slug"])
        op.create_index(f"ix_{table}_category", table, ["category"])
        op.create_index(f"ix_{table}_search_vector", table, ["search_vector"], postgresql_using="gin")

    op.create_table(
        "category_metadata",
        sa.Column("id", sa.String(), primary_key=True),
        _repository_fk(),
        sa.Column("category_slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("icon", sa.String()),
        sa.Column("description", sa.Text()),
        sa.Column("parent_slug", sa.String()),
        sa.Column("level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("source_meta_path", sa.String()),
        *_timestamps(),
        sa.UniqueConstraint("repository_id", "category_slug", name="uq_category_metadata_repo_slug"),
    )
    op.create_index("ix_category_metadata_repository_id", "category_metadata", ["repository_id"])

    op.create_table(
        "api_specs",
        sa.Column("id", sa.String(), primary_key=True),
        _repository_fk(ondelete="SET NULL", nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("version", sa.String(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("category", sa.String()),
        sa.Column("spec_path", sa.String(), nullable=False),
        sa.Column("spec_content", sa.Text(), nullable=False),
        sa.Column("content_hash", sa.String(64), nullable=False),
        sa.Column("search_vector", postgresql.TSVECTOR()),
        sa.Column("created_by", sa.String()),
        *_timestamps(),
        sa.UniqueConstraint("slug", "version", name="uq_api_specs_slug_version"),
    )
    op.create_index("ix_api_specs_repository_id", "api_specs", ["repository_id"])
    op.create_index("ix_api_specs_category", "api_specs", ["category"])
    op.create_index("ix_api_specs_search_vector", "api_specs", ["search_vector"], postgresql_using="gin")

    op.create_table(
        "authors",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("title", sa.String()),
        sa.Column("bio", sa.Text()),
        sa.Column("avatar", sa.String()),
        sa.Column("linkedin", sa.String()),
        sa.Column("github", sa.String()),
        sa.Column("website", sa.String()),
        sa.Column("location", sa.String()),
        sa.Column("joined_date", sa.String()),
        *_timestamps(),
    )
    op.create_index("ix_authors_email", "authors", ["email"], unique=True)

    op.create_table(
        "repository_images",
        sa.Column("id", sa.String(), primary_key=True),
        _repository_fk(),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("local_path", sa.String(), nullable=False),
        sa.Column("sha", sa.String(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("mime_type", sa.String(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True)),
        *_timestamps(with_updated=False),
        sa.UniqueConstraint("repository_id", "file_path", name="uq_repository_images_repo_path"),
    )
    op.create_index("ix_repository_images_repository_id", "repository_images", ["repository_id"])

    op.create_table(
        "sync_logs",
        sa.Column("id", sa.String(), primary_key=True),
        _repository_fk(),
        sa.Column("status", sync_status, nullable=False, server_default="in_progress"),
        sa.Column("triggered_by", sa.String(), nullable=False, server_default="scheduler"),
        sa.Column("files_added", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("files_changed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("files_deleted", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.Integer()),
        sa.Column("error", sa.Text()),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_sync_logs_repository_id", "sync_logs", ["repository_id"])
    op.create_index("ix_sync_logs_repository_started_at", "sync_logs", ["repository_id", "started_at"])

    op.create_table(
        "document_changes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "sync_log_id",
            sa.String(),
            sa.ForeignKey("sync_logs.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("change_type", change_type, nullable=False),
        sa.Column("document_type", document_type, nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("title", sa.String()),
        sa.Column("old_hash", sa.String(64)),
        sa.Column("new_hash", sa.String(64)),
        *_timestamps(with_updated=False),
    )
    op.create_index("ix_document_changes_sync_log_id", "document_changes", ["sync_log_id"])

    op.create_table(
        "teams",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_teams_slug", "teams", ["slug"], unique=True)

    op.create_table(
        "releases",
        sa.Column("id", sa.String(), primary_key=True),
        _repository_fk(),
        sa.Column("version", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("teams", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("document_title", sa.String()),
        sa.Column("document_slug", sa.String()),
        sa.Column("notified_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.UniqueConstraint("repository_id", "file_path", "version", name="uq_releases_repo_path_version"),
    )
    op.create_index("ix_releases_repository_id", "releases", ["repository_id"])


def downgrade() -> None:
    """Drop all sync tables."""
    for table in (
        "releases",
        "teams",
        "document_changes",
        "sync_logs",
        "repository_images",
        "authors",
        "api_specs",
        "category_metadata",
        *CONTENT_TABLES,
        "repositories",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_type in (document_type, change_type, sync_status, source_type):
        enum_type.drop(bind, checkfirst=True)
