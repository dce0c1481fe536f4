"""Content hashing used for change detection."""

import hashlib


def compute_content_hash(content: str | bytes) -> str:
    """Return the SHA-256 hex digest of raw file content.

    Strings are encoded as UTF-8. The digest is taken over the unparsed
    file, so frontmatter edits count as changes.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()
