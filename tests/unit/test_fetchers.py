"""Unit tests for the GitHub and Azure DevOps fetchers."""

import base64

import httpx
import pytest

from packages.docshub.connectors.azure_devops import AzureDevOpsFetcher
from packages.docshub.connectors.factory import create_fetcher
from packages.docshub.connectors.github import GitHubFetcher
from packages.docshub.connectors.http import create_http_client
from packages.docshub.database.models import SourceType
from packages.docshub.dtos.sync import SourceImage
from packages.docshub.exceptions import SourceConfigurationError, SourceFetchError
from packages.docshub.utils.encryption import encrypt_secret

GITHUB_TOKEN = "ghp_secret_token"

GITHUB_TREE = {
    "truncated": False,
    "tree": [
        {"path": "docs", "type": "tree", "sha": "t1"},
        {"path": "docs/intro.md", "type": "blob", "sha": "a1", "size": 10},
        {"path": "docs/_meta.json", "type": "blob", "sha": "a2", "size": 10},
        {"path": "docs/_img/logo.png", "type": "blob", "sha": "img1", "size": 4},
        {"path": "blog/post.md", "type": "blob", "sha": "a3", "size": 10},
        {"path": "authors/jane.json", "type": "blob", "sha": "a4", "size": 10},
        {"path": "api-specs/payments/payments.yaml", "type": "blob", "sha": "a5", "size": 10},
        {"path": "api-specs/payments/notes.md", "type": "blob", "sha": "a6", "size": 10},
        {"path": "src/main.py", "type": "blob", "sha": "a7", "size": 10},
    ],
}


def github_handler(requests: list[httpx.Request], fail_paths: set[str] | None = None):
    fail_paths = fail_paths or set()

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path == "/repos/acme/handbook/git/trees/main":
            return httpx.Response(200, json=GITHUB_TREE)
        if path.startswith("/repos/acme/handbook/contents/"):
            file_path = path.removeprefix("/repos/acme/handbook/contents/")
            if file_path in fail_paths:
                return httpx.Response(500, text="boom")
            return httpx.Response(200, text=f"content of {file_path}")
        if path == "/repos/acme/handbook/git/blobs/img1":
            return httpx.Response(200, json={"encoding": "base64", "content": base64.b64encode(b"\x89PNG").decode()})
        return httpx.Response(404)

    return handler


def make_github(handler, **overrides) -> GitHubFetcher:
    config = {"owner": "acme", "repo": "handbook", "token": GITHUB_TOKEN, "api_url": "https://api.github.test"}
    config.update(overrides)
    return GitHubFetcher(config, client=create_http_client(transport=httpx.MockTransport(handler)))


class TestGitHubFetcher:
    def test_missing_required_settings(self):
        with pytest.raises(SourceConfigurationError, match="owner"):
            GitHubFetcher({"repo": "handbook", "token": "t"})

    @pytest.mark.asyncio()
    async def test_fetch_files_splits_documents_and_specs(self):
        requests: list[httpx.Request] = []
        async with make_github(github_handler(requests)) as fetcher:
            result = await fetcher.fetch_files()

        assert sorted(doc.path for doc in result.documents) == [
            "authors/jane.json",
            "blog/post.md",
            "docs/_meta.json",
            "docs/intro.md",
        ]
        assert [spec.path for spec in result.api_specs] == ["api-specs/payments/payments.yaml"]
        assert result.errors == []

        tree_request = requests[0]
        assert tree_request.url.params["recursive"] == "1"
        assert tree_request.headers["Authorization"] == f"Bearer {GITHUB_TOKEN}"
        assert tree_request.headers["X-GitHub-Api-Version"] == "2022-11-28"

        content_requests = [r for r in requests if "/contents/" in r.url.path]
        assert all(r.url.params["ref"] == "main" for r in content_requests)
        assert all(r.headers["Accept"] == "application/vnd.github.raw+json" for r in content_requests)

    @pytest.mark.asyncio()
    async def test_failed_file_is_skipped_and_recorded(self):
        requests: list[httpx.Request] = []
        async with make_github(github_handler(requests, fail_paths={"docs/intro.md"})) as fetcher:
            result = await fetcher.fetch_files()

        assert "docs/intro.md" not in [doc.path for doc in result.documents]
        assert len(result.errors) == 1
        assert "docs/intro.md" in result.errors[0]
        assert result.failed_paths == {"docs/intro.md"}

    @pytest.mark.asyncio()
    async def test_tree_failure_raises_without_leaking_token(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Bad credentials"})

        async with make_github(handler) as fetcher:
            with pytest.raises(SourceFetchError) as exc_info:
                await fetcher.fetch_files()

        assert exc_info.value.status_code == 401
        assert GITHUB_TOKEN not in str(exc_info.value)

    @pytest.mark.asyncio()
    async def test_base_path_limits_scope(self):
        tree = {
            "tree": [
                {"path": "site/docs/a.md", "type": "blob", "sha": "1"},
                {"path": "docs/b.md", "type": "blob", "sha": "2"},
            ]
        }

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/git/trees/main"):
                return httpx.Response(200, json=tree)
            return httpx.Response(200, text="x")

        async with make_github(handler, base_path="site") as fetcher:
            result = await fetcher.fetch_files()

        assert [doc.path for doc in result.documents] == ["site/docs/a.md"]

    @pytest.mark.asyncio()
    async def test_tree_is_listed_once(self):
        requests: list[httpx.Request] = []
        async with make_github(github_handler(requests)) as fetcher:
            await fetcher.fetch_files()
            await fetcher.list_images()

        assert sum(1 for r in requests if "/git/trees/" in r.url.path) == 1

    @pytest.mark.asyncio()
    async def test_images_are_listed_and_downloaded(self):
        requests: list[httpx.Request] = []
        async with make_github(github_handler(requests)) as fetcher:
            images = await fetcher.list_images()
            data = await fetcher.download_image(images[0])

        assert images == [SourceImage(path="docs/_img/logo.png", sha="img1", size=4)]
        assert data == b"\x89PNG"

    @pytest.mark.asyncio()
    async def test_images_found_when_base_path_is_the_docs_directory(self):
        requests: list[httpx.Request] = []
        async with make_github(github_handler(requests), base_path="docs") as fetcher:
            images = await fetcher.list_images()

        assert [image.path for image in images] == ["docs/_img/logo.png"]


AZURE_ITEMS = {
    "value": [
        {"path": "/content", "isFolder": True},
        {"path": "/content/docs/intro.md", "objectId": "o1", "size": 5},
        {"path": "/content/docs/img/chart.png", "objectId": "o2", "size": 7},
        {"path": "/content/api-specs/crm/contacts.yaml", "objectId": "o3", "size": 5},
    ]
}


class TestAzureDevOpsFetcher:
    def _make(self, requests: list[httpx.Request]) -> AzureDevOpsFetcher:
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            params = request.url.params
            if params.get("recursionLevel") == "Full":
                return httpx.Response(200, json=AZURE_ITEMS)
            if params.get("path") == "/content/docs/img/chart.png":
                return httpx.Response(200, content=b"PNGDATA")
            return httpx.Response(200, text=f"content of {params.get('path')}")

        config = {
            "organization": "acme",
            "project": "portal",
            "repository_id": "repo-guid",
            "token": "azure-pat",
            "branch": "develop",
            "base_path": "content",
            "api_url": "https://dev.azure.test",
        }
        return AzureDevOpsFetcher(config, client=create_http_client(transport=httpx.MockTransport(handler)))

    @pytest.mark.asyncio()
    async def test_fetch_files(self):
        requests: list[httpx.Request] = []
        async with self._make(requests) as fetcher:
            result = await fetcher.fetch_files()

        assert [doc.path for doc in result.documents] == ["content/docs/intro.md"]
        assert [spec.path for spec in result.api_specs] == ["content/api-specs/crm/contacts.yaml"]
        assert result.documents[0].content == "content of /content/docs/intro.md"

        listing = requests[0]
        assert listing.url.path == "/acme/portal/_apis/git/repositories/repo-guid/items"
        assert listing.url.params["scopePath"] == "/content"
        assert listing.url.params["versionDescriptor.version"] == "develop"
        assert listing.url.params["api-version"] == "7.0"
        expected_auth = base64.b64encode(b":azure-pat").decode()
        assert listing.headers["Authorization"] == f"Basic {expected_auth}"

    @pytest.mark.asyncio()
    async def test_images(self):
        requests: list[httpx.Request] = []
        async with self._make(requests) as fetcher:
            images = await fetcher.list_images()
            data = await fetcher.download_image(images[0])

        assert images == [SourceImage(path="content/docs/img/chart.png", sha="o2", size=7)]
        assert data == b"PNGDATA"


class TestCreateFetcher:
    def test_github(self, make_repository, encryption_key):
        repository = make_repository(pat_encrypted=encrypt_secret("tok"), base_path="site")

        fetcher = create_fetcher(repository)

        assert isinstance(fetcher, GitHubFetcher)
        assert fetcher.owner == "acme"
        assert fetcher.base_path == "site"

    def test_azure(self, make_repository, encryption_key):
        repository = make_repository(
            source=SourceType.AZURE,
            organization="acme",
            project="portal",
            azure_repository_id="guid",
            pat_encrypted=encrypt_secret("tok"),
        )

        assert isinstance(create_fetcher(repository), AzureDevOpsFetcher)

    def test_missing_token(self, make_repository):
        with pytest.raises(SourceConfigurationError, match="no access token"):
            create_fetcher(make_repository(pat_encrypted=None))

