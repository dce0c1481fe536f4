"""Metadata extraction for API spec YAML files."""

import logging
import posixpath
import re
from typing import Any

import yaml  # type: ignore[import-untyped]

from packages.docshub.dtos.sync import ApiSpecMetadata

logger = logging.getLogger(__name__)

DEFAULT_SPEC_VERSION = "1.0.0"

_VERSION_SUFFIX_RE = re.compile(r"-v?\d+\.\d+\.\d+$", re.IGNORECASE)
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9-]")
_EXTENSION_RE = re.compile(r"\.ya?ml$", re.IGNORECASE)


def spec_slug(spec_name: str) -> str:
    """``Payments-API-v2.1.0`` -> ``payments-api``."""
    return _SLUG_INVALID_RE.sub("-", _VERSION_SUFFIX_RE.sub("", spec_name).lower())


def load_spec_document(content: str) -> dict[str, Any]:
    """Parse spec YAML (or JSON) into a mapping; anything else yields ``{}``."""
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.warning(f"Could not parse API spec content: {e}")
        return {}
    return document if isinstance(document, dict) else {}


def parse_api_spec(path: str, content: str) -> ApiSpecMetadata:
    """Derive name, slug, version, description and category of a spec file.

    ``path`` must look like ``.../api-specs/<category>/<file>.yaml``.
    The ``info`` block supplies title, version and description; the file
    stem and ``1.0.0`` are the defaults.
    """
    parts = path.lstrip("/").split("/")
    try:
        index = parts.index("api-specs")
    except ValueError as e:
        raise ValueError(f"{path} is not under an api-specs directory") from e
    if len(parts) < index + 3:
        raise ValueError(f"{path} is not inside an api-specs category directory")

    spec_name = _EXTENSION_RE.sub("", posixpath.basename(path))
    info = load_spec_document(content).get("info")
    info = info if isinstance(info, dict) else {}

    return ApiSpecMetadata(
        name=str(info.get("title") or spec_name),
        slug=spec_slug(spec_name),
        version=str(info.get("version") or DEFAULT_SPEC_VERSION),
        description=str(info["description"]) if info.get("description") else None,
        category=parts[index + 1],
    )
