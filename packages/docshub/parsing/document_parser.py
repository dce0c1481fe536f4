"""Markdown document parsing and classification."""

import logging
import posixpath
import re
from datetime import UTC, date, datetime
from typing import Any

from packages.docshub.database.models import DocumentType
from packages.docshub.dtos.sync import ParsedDocument
from packages.docshub.parsing.frontmatter import FrontmatterError, split_frontmatter
from packages.docshub.parsing.release_blocks import extract_release_blocks
from packages.docshub.utils.hashing import compute_content_hash

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 200
DEFAULT_INDEX_SLUG = "docs"

_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_MARKDOWN_EXT_RE = re.compile(r"\.md$", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


def is_blog_post(file_path: str) -> bool:
    return "/blog/" in "/" + file_path.lower()


def is_document(file_path: str) -> bool:
    lower = "/" + file_path.lower()
    if "/docs/" in lower or "/documentation/" in lower:
        return True
    return (lower.endswith(".md") or lower.endswith(".mdx")) and "/blog/" not in lower


def classify_document(file_path: str) -> DocumentType | None:
    """Blog post if under ``blog/``, otherwise a document, otherwise None."""
    if is_blog_post(file_path):
        return DocumentType.BLOG
    if is_document(file_path):
        return DocumentType.DOCUMENT
    return None


def _is_index_file(file_name: str) -> bool:
    return file_name.lower() == "index.md"


def derive_slug(file_path: str) -> str:
    """URL slug for a markdown file.

    ``docs/foo/bar.md`` becomes ``docs/foo/bar``. Index files take their
    parent directory, relative to the ``docs`` root: ``docs/foo/index.md``
    becomes ``foo`` and ``docs/index.md`` becomes ``docs``.
    """
    path = file_path.lstrip("/")
    file_name = posixpath.basename(path)
    if _is_index_file(file_name):
        parts = path.split("/")[:-1]
        if "docs" in parts:
            parts = parts[parts.index("docs") + 1 :]
        slug = "/".join(parts) or DEFAULT_INDEX_SLUG
    else:
        slug = _MARKDOWN_EXT_RE.sub("", path)
    return _WHITESPACE_RE.sub("-", slug.lower())


def derive_category(file_path: str) -> str | None:
    """First directory below a ``docs`` segment, if the file sits inside one."""
    parts = file_path.lstrip("/").split("/")
    if "docs" not in parts:
        return None
    index = parts.index("docs")
    # the segment after docs must be a directory, not the file itself
    if len(parts) > index + 2:
        return parts[index + 1]
    return None


def _parse_date(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Ignoring unparseable publish date {value!r}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _parse_tags(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(tag).strip() for tag in value if str(tag).strip()]
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    return []


def _parse_roles(value: Any) -> list[str]:
    """A list of roles, or a single role given as a string."""
    if isinstance(value, list):
        return [str(role).strip() for role in value if str(role).strip()]
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    return []


def _excerpt(frontmatter: dict[str, Any], body: str) -> str:
    for key in ("excerpt", "description"):
        if frontmatter.get(key):
            return str(frontmatter[key])
    text = body.strip()
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[:EXCERPT_LENGTH].strip() + "..."


def parse_markdown_document(file_path: str, content: str) -> ParsedDocument:
    """Parse one markdown file into its normalized record.

    An unparseable frontmatter block is not fatal: the whole file is used
    as the body and the title falls back to the first ``# `` heading.
    ``source_hash`` is always taken over the raw content.
    """
    try:
        frontmatter, body = split_frontmatter(content)
    except FrontmatterError as e:
        logger.warning(f"Failed to parse frontmatter for {file_path}, using content as-is: {e}")
        frontmatter, body = {}, content
        if heading := _HEADING_RE.search(content):
            frontmatter["title"] = heading.group(1).strip()

    file_name = posixpath.basename(file_path)
    title = frontmatter.get("title") or _MARKDOWN_EXT_RE.sub("", file_name).replace("-", " ")
    published = frontmatter.get("date") or frontmatter.get("publishedAt") or frontmatter.get("published")
    author = frontmatter.get("author")

    return ParsedDocument(
        file_path=file_path,
        file_name=file_name,
        title=str(title),
        slug=derive_slug(file_path),
        content=body,
        excerpt=_excerpt(frontmatter, body),
        category=str(frontmatter["category"]) if frontmatter.get("category") else derive_category(file_path),
        tags=_parse_tags(frontmatter.get("tags")),
        author=str(author) if author else None,
        published_at=_parse_date(published),
        is_draft=frontmatter.get("draft") is True or frontmatter.get("status") == "draft",
        restricted=bool(frontmatter.get("restricted")),
        restricted_roles=_parse_roles(frontmatter.get("restrictedRoles")),
        source_hash=compute_content_hash(content),
        document_type=classify_document(file_path) or DocumentType.DOCUMENT,
        releases=extract_release_blocks(body),
    )
