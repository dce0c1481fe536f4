"""YAML frontmatter splitting for markdown files."""

import re
from typing import Any

import yaml  # type: ignore[import-untyped]

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


class FrontmatterError(ValueError):
    """Raised when a frontmatter block exists but is not a YAML mapping."""


def split_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split ``content`` into its frontmatter mapping and markdown body.

    Files without a frontmatter block return an empty mapping and the
    content unchanged.

    Raises:
        FrontmatterError: If the block is invalid YAML or not a mapping
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid frontmatter: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(f"Frontmatter must be a mapping, got {type(data).__name__}")
    return data, content[match.end() :]
