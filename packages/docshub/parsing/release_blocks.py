"""Extraction of ``:::release`` blocks embedded in markdown.

Syntax::

    :::release
    teams: CRM, POS
    version: 2024.01.15.1
    ---
    ### What's New
    - Feature A
    :::
"""

import re

from packages.docshub.dtos.sync import ReleaseBlock

_BLOCK_RE = re.compile(r":::release\s*\n([\s\S]*?):::")
_TEAMS_RE = re.compile(r"^teams:\s*(.+)", re.IGNORECASE)
_VERSION_RE = re.compile(r"^version:\s*(.+)", re.IGNORECASE)
_VERSION_FORMAT_RE = re.compile(r"^\d{4}\.\d{2}\.\d{2}\.\d+$")


def is_valid_release_version(version: str) -> bool:
    """True for versions shaped like ``yyyy.mm.dd.N``."""
    return bool(_VERSION_FORMAT_RE.match(version))


def _parse_header(header: str) -> tuple[tuple[str, ...], str] | None:
    teams: tuple[str, ...] = ()
    version = ""
    for line in header.strip().splitlines():
        line = line.strip()
        if teams_match := _TEAMS_RE.match(line):
            teams = tuple(team.strip().lower() for team in teams_match.group(1).split(",") if team.strip())
        if version_match := _VERSION_RE.match(line):
            version = version_match.group(1).strip()
    if not teams or not version:
        return None
    return teams, version


def extract_release_blocks(markdown: str) -> list[ReleaseBlock]:
    """Return every well-formed release block in document order.

    Blocks without a ``---`` separator, a team list or a version are skipped.
    """
    releases = []
    for match in _BLOCK_RE.finditer(markdown):
        body = match.group(1)
        separator = body.find("---")
        if separator == -1:
            continue
        header = _parse_header(body[:separator])
        if header is None:
            continue
        teams, version = header
        releases.append(ReleaseBlock(version=version, teams=teams, content=body[separator + 3 :].strip()))
    return releases
