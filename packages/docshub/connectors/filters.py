"""Path rules deciding which repository files a sync run ingests.

All paths are repository-relative with no leading slash.
"""

import posixpath

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico", ".bmp"})
IMAGE_CONTENT_DIRS = ("docs/", "blog/", "api-specs/")
API_SPECS_DIR = "api-specs"
API_SPEC_LANDING_PAGES = frozenset({"index.md", "readme.md"})
META_FILE_NAME = "_meta.json"


def normalize_path(path: str) -> str:
    """Strip the leading slash Azure DevOps puts on item paths."""
    return path.lstrip("/")


def normalize_base_path(base_path: str | None) -> str:
    if not base_path:
        return ""
    return base_path.strip("/")


def is_within_base_path(path: str, base_path: str | None) -> bool:
    base = normalize_base_path(base_path)
    if not base:
        return True
    return path == base or path.startswith(base + "/")


def relative_to_base_path(path: str, base_path: str | None) -> str:
    base = normalize_base_path(base_path)
    if base and path.startswith(base + "/"):
        return path[len(base) + 1 :]
    return path


def _file_name(path: str) -> str:
    return posixpath.basename(path).lower()


def _api_specs_index(parts: list[str]) -> int | None:
    try:
        return parts.index(API_SPECS_DIR)
    except ValueError:
        return None


def is_markdown_file(path: str) -> bool:
    lower = path.lower()
    return lower.endswith(".md") or lower.endswith(".mdx")


def is_meta_file(path: str) -> bool:
    """Category descriptor. Descriptors inside an ``authors/`` directory are not categories."""
    return posixpath.basename(path) == META_FILE_NAME and "authors" not in path.split("/")[:-1]


def is_author_file(path: str) -> bool:
    """JSON profile under an ``authors/`` directory, excluding descriptors."""
    parts = path.split("/")
    name = _file_name(path)
    return "authors" in parts[:-1] and name.endswith(".json") and name not in (META_FILE_NAME, "index.json")


def is_under_api_specs(path: str) -> bool:
    return _api_specs_index(path.split("/")[:-1]) is not None


def is_api_spec_file(path: str) -> bool:
    """YAML at ``api-specs/<category>/<file>.yaml`` or deeper."""
    name = _file_name(path)
    if not (name.endswith(".yaml") or name.endswith(".yml")):
        return False
    parts = path.split("/")
    index = _api_specs_index(parts)
    return index is not None and len(parts) >= index + 3


def is_document_file(path: str) -> bool:
    """Markdown, ``_meta.json`` or author JSON that goes into the documents list.

    Under ``api-specs/`` only ``index.md`` and ``readme.md`` landing pages
    are kept; other markdown and descriptors there are ignored.
    """
    if is_author_file(path):
        return True
    if not (is_markdown_file(path) or is_meta_file(path)):
        return False
    if is_under_api_specs(path):
        return _file_name(path) in API_SPEC_LANDING_PAGES
    return True


def is_image_file(path: str, base_path: str | None = None) -> bool:
    """Image inside one of the content directories.

    The repository-relative path decides; a path relative to ``base_path``
    is also accepted so content nested under the base path is found.
    """
    extension = posixpath.splitext(path)[1].lower()
    if extension not in IMAGE_EXTENSIONS:
        return False
    if path.startswith(IMAGE_CONTENT_DIRS):
        return True
    return relative_to_base_path(path, base_path).startswith(IMAGE_CONTENT_DIRS)
