"""Full-text search vector maintenance for synced content."""

import json
import logging
import re
from typing import Any

from packages.docshub.parsing.api_spec_parser import load_spec_document

from .cache_manager import CacheManager

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 3

_MARKDOWN_SYMBOLS_RE = re.compile(r"[#*`]")
_JSON_SYNTAX_RE = re.compile(r"[{}\":\[\],]")
_WHITESPACE_RE = re.compile(r"\s+")


def generate_search_text(title: str, content: str, excerpt: str | None = None, tags: list[str] | None = None) -> str:
    """Build the text fed to ``to_tsvector``.

    The title is repeated to weight it above body text. Markdown emphasis
    and heading symbols are removed and whitespace collapsed.
    """
    weighted_title = " ".join([title] * TITLE_WEIGHT)
    text = f"{weighted_title} {excerpt or ''} {content} {' '.join(tags or [])}"
    text = _MARKDOWN_SYMBOLS_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def api_spec_search_text(name: str, spec_content: str, description: str | None, version: str) -> str:
    """Search text for an API spec, indexing the ``paths`` section."""
    paths = load_spec_document(spec_content).get("paths")
    paths_text = ""
    if paths:
        paths_text = _JSON_SYNTAX_RE.sub(" ", json.dumps(paths, default=str))
    return generate_search_text(name, paths_text, description, [version])


class SearchIndexer:
    """Regenerates search vectors and invalidates the search cache.

    Args:
        cache: Cache manager used to drop ``search:*`` after every update;
            None disables invalidation
    """

    def __init__(self, cache: CacheManager | None = None):
        self.cache = cache
        self.vectors_updated = 0

    async def _invalidate(self) -> None:
        if self.cache is not None:
            await self.cache.invalidate_search()

    async def index_content_item(self, repository: Any, item: Any) -> None:
        """Update the vector of a Document or BlogPost row.

        Args:
            repository: ContentItemRepository owning the row's table
            item: The Document/BlogPost instance
        """
        text = generate_search_text(item.title, item.content, item.excerpt, list(item.tags or []))
        await repository.update_search_vector(item.id, text)
        self.vectors_updated += 1
        await self._invalidate()

    async def index_api_spec(self, repository: Any, spec: Any) -> None:
        text = api_spec_search_text(spec.name, spec.spec_content, spec.description, spec.version)
        await repository.update_search_vector(spec.id, text)
        self.vectors_updated += 1
        await self._invalidate()
