"""Base fetcher interface for external content repositories."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from packages.docshub.connectors.filters import (
    is_api_spec_file,
    is_document_file,
    is_image_file,
    is_within_base_path,
    normalize_path,
)
from packages.docshub.connectors.http import create_http_client
from packages.docshub.dtos.sync import FetchResult, SourceFile, SourceImage
from packages.docshub.exceptions import SourceConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8


class SourceFetcher(ABC):
    """Abstract base class for repository fetchers.

    Subclasses list the repository tree and download single files. The
    base class applies the path rules and splits the listing into content
    files and API spec files.

    A failed tree listing raises ``SourceFetchError`` and aborts the run.
    A failed single-file download is logged, recorded in
    ``FetchResult.errors`` and skipped.

    Example:
        ```python
        async with GitHubFetcher(config) as fetcher:
            result = await fetcher.fetch_files()
        ```
    """

    source_type: str = ""
    required_keys: tuple[str, ...] = ()

    def __init__(self, config: dict[str, Any], client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self.validate_config()
        self._token: str = config.get("token") or ""
        self.branch: str = config.get("branch") or "main"
        self.base_path: str = config.get("base_path") or ""
        self.concurrency: int = int(config.get("concurrency") or DEFAULT_CONCURRENCY)
        self._owns_client = client is None
        self._client = client or create_http_client(timeout=config.get("timeout"))

    @property
    def config(self) -> dict[str, Any]:
        return self._config

    def validate_config(self) -> None:
        missing = [key for key in self.required_keys if not self._config.get(key)]
        if missing:
            raise SourceConfigurationError(
                f"{self.source_type} repository is missing required settings: {', '.join(missing)}"
            )

    async def __aenter__(self) -> "SourceFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _redact_sensitive(self, text: str) -> str:
        """Redact the access token from text that may be logged or raised."""
        if not text:
            return text
        if self._token:
            return text.replace(self._token, "***")
        return text

    @abstractmethod
    async def list_tree(self) -> list[dict[str, Any]]:
        """Return every file in scope as ``{"path", "sha", "size"}`` dicts.

        Paths must already be normalized (no leading slash).

        Raises:
            SourceFetchError: If the listing request fails
        """
        ...

    @abstractmethod
    async def fetch_file(self, path: str) -> str:
        """Return the decoded text content of one file."""
        ...

    @abstractmethod
    async def list_images(self) -> list[SourceImage]:
        """Return images under the content directories with their source hashes."""
        ...

    @abstractmethod
    async def download_image(self, image: SourceImage) -> bytes:
        ...

    async def fetch_files(self) -> FetchResult:
        """Fetch all content, metadata, author and API spec files in scope."""
        tree = await self.list_tree()
        paths = [normalize_path(entry["path"]) for entry in tree]
        paths = [path for path in paths if is_within_base_path(path, self.base_path)]

        document_paths = [path for path in paths if is_document_file(path)]
        spec_paths = [path for path in paths if is_api_spec_file(path)]
        logger.info(
            f"{self.source_type}: {len(document_paths)} content files and {len(spec_paths)} API specs "
            f"out of {len(paths)} files in scope"
        )

        result = FetchResult()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _fetch(path: str) -> SourceFile | None:
            async with semaphore:
                try:
                    return SourceFile(path=path, content=await self.fetch_file(path))
                except (httpx.HTTPError, UnicodeDecodeError) as e:
                    message = f"Failed to fetch {path}: {self._redact_sensitive(str(e))}"
                    logger.warning(message)
                    result.errors.append(message)
                    result.failed_paths.add(path)
                    return None

        documents = await asyncio.gather(*(_fetch(path) for path in document_paths))
        specs = await asyncio.gather(*(_fetch(path) for path in spec_paths))
        result.documents = [doc for doc in documents if doc is not None]
        result.api_specs = [spec for spec in specs if spec is not None]
        return result

    def _filter_images(self, tree: list[dict[str, Any]]) -> list[SourceImage]:
        images = []
        for entry in tree:
            path = normalize_path(entry["path"])
            if is_within_base_path(path, self.base_path) and is_image_file(path, self.base_path):
                images.append(SourceImage(path=path, sha=entry["sha"], size=int(entry.get("size") or 0)))
        return images
