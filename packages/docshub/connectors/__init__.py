"""Source repository fetchers."""

from .azure_devops import AzureDevOpsFetcher
from .base import SourceFetcher
from .factory import create_fetcher
from .github import GitHubFetcher

__all__ = ["AzureDevOpsFetcher", "GitHubFetcher", "SourceFetcher", "create_fetcher"]
