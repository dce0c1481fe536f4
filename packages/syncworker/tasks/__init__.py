"""Celery tasks for repository syncs."""

from .sync import sync_repository_now
from .sync_dispatcher import dispatch_due_syncs

__all__ = ["dispatch_due_syncs", "sync_repository_now"]
