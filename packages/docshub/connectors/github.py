"""GitHub fetcher using the REST git trees and contents APIs."""

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from packages.docshub.config import settings
from packages.docshub.connectors.base import SourceFetcher
from packages.docshub.dtos.sync import SourceImage
from packages.docshub.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class GitHubFetcher(SourceFetcher):
    """Fetcher for a GitHub repository branch.

    Config keys:
        owner: Repository owner (user or organization)
        repo: Repository name
        token: Bearer token
        branch: Branch to read (default "main")
        base_path: Only files below this path are synced
        api_url: API root (default GITHUB_API_URL)
    """

    source_type = "github"
    required_keys = ("owner", "repo", "token")

    def __init__(self, config: dict[str, Any], client: httpx.AsyncClient | None = None) -> None:
        super().__init__(config, client)
        self.owner: str = config["owner"]
        self.repo: str = config["repo"]
        self.api_url: str = (config.get("api_url") or settings.GITHUB_API_URL).rstrip("/")
        self._tree: list[dict[str, Any]] | None = None

    def _headers(self, accept: str = "application/vnd.github+json") -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": accept,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    @property
    def _repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}"

    async def list_tree(self) -> list[dict[str, Any]]:
        """List every blob on the branch (cached for the fetcher's lifetime)."""
        if self._tree is not None:
            return self._tree

        url = f"{self._repo_url}/git/trees/{quote(self.branch, safe='')}"
        try:
            response = await self._client.get(url, params={"recursive": "1"}, headers=self._headers())
        except httpx.HTTPError as e:
            raise SourceFetchError(f"GitHub tree request failed: {self._redact_sensitive(str(e))}") from e

        if not response.is_success:
            raise SourceFetchError(
                f"Failed to fetch GitHub tree for {self.owner}/{self.repo}@{self.branch}: "
                f"{response.status_code} {self._redact_sensitive(response.reason_phrase)}",
                status_code=response.status_code,
            )

        payload = response.json()
        if payload.get("truncated"):
            logger.warning(f"GitHub tree for {self.owner}/{self.repo} is truncated; some files will not sync")

        self._tree = [
            {"path": item["path"], "sha": item.get("sha", ""), "size": item.get("size", 0)}
            for item in payload.get("tree", [])
            if item.get("type") == "blob"
        ]
        return self._tree

    async def fetch_file(self, path: str) -> str:
        response = await self._client.get(
            f"{self._repo_url}/contents/{quote(path)}",
            params={"ref": self.branch},
            headers=self._headers("application/vnd.github.raw+json"),
        )
        response.raise_for_status()
        return response.text

    async def list_images(self) -> list[SourceImage]:
        return self._filter_images(await self.list_tree())

    async def download_image(self, image: SourceImage) -> bytes:
        """Download through the blob API, which returns base64 content."""
        response = await self._client.get(f"{self._repo_url}/git/blobs/{image.sha}", headers=self._headers())
        response.raise_for_status()
        payload = response.json()
        if payload.get("encoding") != "base64":
            raise ValueError(f"Unexpected blob encoding for {image.path}: {payload.get('encoding')}")
        return base64.b64decode(payload.get("content", ""))
