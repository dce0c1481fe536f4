"""Build a fetcher for a configured Repository row."""

import logging

import httpx

from packages.docshub.connectors.azure_devops import AzureDevOpsFetcher
from packages.docshub.connectors.base import SourceFetcher
from packages.docshub.connectors.github import GitHubFetcher
from packages.docshub.database.models import Repository, SourceType
from packages.docshub.exceptions import SourceConfigurationError
from packages.docshub.utils.encryption import decrypt_secret

logger = logging.getLogger(__name__)


def create_fetcher(repository: Repository, client: httpx.AsyncClient | None = None) -> SourceFetcher:
    """Decrypt the repository token and return the matching fetcher.

    Raises:
        SourceConfigurationError: Unknown source kind or no stored token
        DecryptionError: The token cannot be decrypted with the current key
    """
    if not repository.pat_encrypted:
        raise SourceConfigurationError(f"Repository {repository.slug} has no access token")

    token = decrypt_secret(repository.pat_encrypted)
    common = {"token": token, "branch": repository.branch, "base_path": repository.base_path}

    source = SourceType(repository.source)
    if source is SourceType.GITHUB:
        return GitHubFetcher({**common, "owner": repository.owner, "repo": repository.repo}, client=client)
    if source is SourceType.AZURE:
        return AzureDevOpsFetcher(
            {
                **common,
                "organization": repository.organization,
                "project": repository.project,
                "repository_id": repository.azure_repository_id,
            },
            client=client,
        )
    raise SourceConfigurationError(f"Unsupported repository source: {repository.source}")
