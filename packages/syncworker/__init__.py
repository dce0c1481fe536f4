"""Repository sync worker: reconciliation services, Celery tasks and CLI."""
