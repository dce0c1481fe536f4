"""Errors raised by the sync pipeline.

Per-item problems (one file, one image, one spec) are collected into the
``errors`` list of a result object and never raised. Everything defined
here aborts a sync run.
"""


class SyncError(Exception):
    """Base exception for sync run failures."""


class SourceConfigurationError(SyncError):
    """Repository configuration is missing something a fetcher needs."""


class SourceFetchError(SyncError):
    """The repository file listing could not be retrieved."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RepositoryNotFoundError(SyncError):
    def __init__(self, repository_id: str) -> None:
        self.repository_id = repository_id
        super().__init__(f"Repository '{repository_id}' not found")


class RepositoryDisabledError(SyncError):
    def __init__(self, repository_id: str) -> None:
        self.repository_id = repository_id
        super().__init__(f"Repository '{repository_id}' is disabled")


class SyncAlreadyRunningError(SyncError):
    """Another run holds the repository's sync lock."""

    def __init__(self, repository_id: str) -> None:
        self.repository_id = repository_id
        super().__init__(f"A sync is already running for repository '{repository_id}'")
