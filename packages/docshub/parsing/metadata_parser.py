"""Category tree parsing from ``_meta.json`` descriptors.

A descriptor is an ordered JSON object mapping slugs to
``{"title", "icon", "description"}``. Its directory, relative to the
content root, is the parent of every entry it declares. The content root
is the first ``docs`` segment of the repository-relative path, wherever it
sits, so ``content/docs/eway/_meta.json`` and ``docs/eway/_meta.json``
describe the same tree::

    docs/_meta.json              -> level 0, no parent
    docs/eway/_meta.json         -> level 1, parent "eway"
    docs/eway/payments/_meta.json -> level 2, parent "eway/payments"

Repository base paths only scope what is fetched and never shift the tree.
"""

import json
import logging
from collections.abc import Iterable

from packages.docshub.dtos.sync import CategoryNode

logger = logging.getLogger(__name__)

CONTENT_ROOT = "docs"
RESERVED_KEYS = frozenset({"index"})


class MetaFileError(ValueError):
    """Raised when a descriptor is not a JSON object of entries."""


def content_relative_parts(path: str) -> list[str]:
    """Path segments below the content root; unchanged when there is none."""
    parts = [part for part in path.split("/") if part]
    if CONTENT_ROOT in parts:
        return parts[parts.index(CONTENT_ROOT) + 1 :]
    return parts


def parse_meta_file(path: str, content: str) -> list[CategoryNode]:
    """Parse one descriptor into category nodes in declaration order.

    Raises:
        MetaFileError: Invalid JSON or an unexpected structure
    """
    try:
        meta = json.loads(content)
    except json.JSONDecodeError as e:
        raise MetaFileError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(meta, dict):
        raise MetaFileError(f"{path} must contain a JSON object")

    dir_parts = content_relative_parts(path)[:-1]
    parent_slug = "/".join(dir_parts) or None

    nodes = []
    order = 0
    for key, entry in meta.items():
        if key in RESERVED_KEYS:
            continue
        if isinstance(entry, str):
            entry = {"title": entry}
        if not isinstance(entry, dict):
            raise MetaFileError(f"{path}: entry '{key}' must be an object")
        nodes.append(
            CategoryNode(
                slug="/".join([*dir_parts, key]),
                title=str(entry.get("title") or key),
                icon=entry.get("icon"),
                description=entry.get("description"),
                parent_slug=parent_slug,
                level=len(dir_parts),
                order=order,
                source_meta_path=path,
            )
        )
        order += 1
    return nodes


def category_prefixes(content_slugs: Iterable[str]) -> set[str]:
    """Every category path implied by a set of content slugs.

    Uses the same content root as descriptors, so ``content/docs/eway/api/setup``
    yields ``eway``, ``eway/api`` and ``eway/api/setup``.
    """
    prefixes: set[str] = set()
    for slug in content_slugs:
        parts = content_relative_parts(slug)
        for depth in range(1, len(parts) + 1):
            prefixes.add("/".join(parts[:depth]))
    return prefixes
