"""Author profile JSON parsing."""

import json
from typing import Any

from packages.docshub.dtos.sync import AuthorProfile


class AuthorFileError(ValueError):
    pass


def _optional(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    return str(value).strip() or None


def parse_author_profile(path: str, content: str) -> AuthorProfile:
    """Parse an author JSON file; ``email`` and ``name`` are required.

    Raises:
        AuthorFileError: Invalid JSON or a missing required field
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise AuthorFileError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AuthorFileError(f"{path} must contain a JSON object")

    email = _optional(data, "email")
    name = _optional(data, "name")
    if not email or not name:
        raise AuthorFileError(f"{path} is missing required field(s) email and/or name")

    social = data.get("social") if isinstance(data.get("social"), dict) else {}
    return AuthorProfile(
        email=email,
        name=name,
        title=_optional(data, "title"),
        bio=_optional(data, "bio"),
        avatar=_optional(data, "avatar"),
        linkedin=_optional(social, "linkedin"),
        github=_optional(social, "github"),
        website=_optional(social, "website"),
        location=_optional(data, "location"),
        joined_date=_optional(data, "joinedDate"),
    )
