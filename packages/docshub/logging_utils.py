"""
Logging helpers for sync runs.

A sync run stores its repository slug and sync log id in context variables
so every record emitted while the run is active can be traced back to it,
including records from concurrently running syncs of other repositories.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

sync_repository_var: ContextVar[str | None] = ContextVar("sync_repository", default=None)
sync_log_id_var: ContextVar[str | None] = ContextVar("sync_log_id", default=None)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(sync_repository)s:%(sync_log_id)s] - %(message)s"


class SyncContextFilter(logging.Filter):
    """Logging filter to inject the active sync run into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.sync_repository = sync_repository_var.get() or "-"
        record.sync_log_id = sync_log_id_var.get() or "-"
        return True


@contextmanager
def sync_log_context(repository_slug: str, sync_log_id: str | None = None) -> Iterator[None]:
    """Bind a repository (and optionally its sync log) to the current context."""
    repo_token = sync_repository_var.set(repository_slug)
    log_token = sync_log_id_var.set(sync_log_id)
    try:
        yield
    finally:
        sync_log_id_var.reset(log_token)
        sync_repository_var.reset(repo_token)


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging with the sync context in every message.

    Safe to call more than once; the filter and formatter are only attached
    to handlers that do not already carry them.
    """
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in root_logger.handlers:
        if not any(isinstance(f, SyncContextFilter) for f in handler.filters):
            handler.addFilter(SyncContextFilter())
        handler.setFormatter(formatter)
