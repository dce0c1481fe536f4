"""Azure DevOps fetcher using the Git items API."""

import base64
import logging
from typing import Any

import httpx

from packages.docshub.config import settings
from packages.docshub.connectors.base import SourceFetcher
from packages.docshub.connectors.filters import normalize_base_path
from packages.docshub.dtos.sync import SourceImage
from packages.docshub.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

AZURE_API_VERSION = "7.0"


class AzureDevOpsFetcher(SourceFetcher):
    """Fetcher for an Azure DevOps Git repository.

    The tree listing is scoped to ``base_path`` on the server side. Item
    paths come back with a leading slash and are normalized by the base
    class.
    """

    source_type = "azure"
    required_keys = ("organization", "project", "repository_id", "token")

    def __init__(self, config: dict[str, Any], client: httpx.AsyncClient | None = None) -> None:
        super().__init__(config, client)
        self.organization: str = config["organization"]
        self.project: str = config["project"]
        self.repository_id: str = config["repository_id"]
        self.api_url: str = (config.get("api_url") or settings.AZURE_DEVOPS_URL).rstrip("/")
        self._tree: list[dict[str, Any]] | None = None

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        credentials = base64.b64encode(f":{self._token}".encode()).decode("ascii")
        return {"Authorization": f"Basic {credentials}", "Accept": accept}

    @property
    def _items_url(self) -> str:
        return (
            f"{self.api_url}/{self.organization}/{self.project}"
            f"/_apis/git/repositories/{self.repository_id}/items"
        )

    def _version_params(self) -> dict[str, str]:
        return {
            "versionDescriptor.version": self.branch,
            "versionDescriptor.versionType": "branch",
            "api-version": AZURE_API_VERSION,
        }

    async def list_tree(self) -> list[dict[str, Any]]:
        if self._tree is not None:
            return self._tree

        params = {
            "scopePath": "/" + normalize_base_path(self.base_path),
            "recursionLevel": "Full",
            **self._version_params(),
        }
        try:
            response = await self._client.get(self._items_url, params=params, headers=self._headers())
        except httpx.HTTPError as e:
            raise SourceFetchError(f"Azure DevOps items request failed: {self._redact_sensitive(str(e))}") from e

        if not response.is_success:
            raise SourceFetchError(
                f"Failed to fetch Azure DevOps items for {self.organization}/{self.project}: "
                f"{response.status_code} {self._redact_sensitive(response.reason_phrase)}",
                status_code=response.status_code,
            )

        self._tree = [
            {"path": item["path"], "sha": item.get("objectId", ""), "size": item.get("size", 0)}
            for item in response.json().get("value", [])
            if not item.get("isFolder")
        ]
        return self._tree

    async def fetch_file(self, path: str) -> str:
        response = await self._client.get(
            self._items_url,
            params={"path": "/" + path, "includeContent": "true", **self._version_params()},
            headers=self._headers("text/plain"),
        )
        response.raise_for_status()
        return response.text

    async def list_images(self) -> list[SourceImage]:
        return self._filter_images(await self.list_tree())

    async def download_image(self, image: SourceImage) -> bytes:
        response = await self._client.get(
            self._items_url,
            params={"path": "/" + image.path, **self._version_params()},
            headers=self._headers("application/octet-stream"),
        )
        response.raise_for_status()
        return response.content
