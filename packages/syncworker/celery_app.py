"""Celery application configuration."""

import logging
import os
from typing import Any

from celery import Celery
from celery.signals import worker_process_init

from packages.docshub.config import settings
from packages.docshub.database.postgres_database import pg_connection_manager
from packages.docshub.logging_utils import configure_logging
from packages.docshub.utils.encryption import SecretEncryption

logger = logging.getLogger(__name__)


def _is_truthy(value: str | None) -> bool:
    """Return True if the provided environment toggle is truthy."""
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _build_base_config() -> dict[str, Any]:
    """Return the baseline Celery configuration."""
    return {
        "task_serializer": "json",
        "accept_content": ["json"],
        "result_serializer": "json",
        "timezone": "UTC",
        "enable_utc": True,
        # A full repository sync can take a while on large trees
        "task_soft_time_limit": settings.SYNC_LOCK_TTL_SECONDS,
        "task_time_limit": settings.SYNC_LOCK_TTL_SECONDS + 300,
        "task_acks_late": True,
        "task_reject_on_worker_lost": True,
        "worker_prefetch_multiplier": 1,
        "worker_max_tasks_per_child": 100,
        "worker_hijack_root_logger": False,
        "result_expires": 3600,
        "broker_connection_retry_on_startup": True,
        "broker_connection_max_retries": 10,
        "beat_schedule": {
            "dispatch-due-repository-syncs": {
                "task": "syncworker.tasks.dispatch_due_syncs",
                "schedule": float(settings.SYNC_CHECK_INTERVAL_SECONDS),
                "options": {"expires": float(settings.SYNC_CHECK_INTERVAL_SECONDS)},
            },
        },
    }


def _build_testing_overrides() -> dict[str, Any]:
    """Return configuration overrides that make Celery safe inside tests."""
    return {
        "broker_connection_retry_on_startup": False,
        "task_always_eager": True,
        "beat_schedule": {},
    }


def _create_celery_app() -> Celery:
    """Instantiate and configure the Celery app."""
    testing_mode = _is_truthy(os.getenv("TESTING"))

    if testing_mode:
        broker_url = os.getenv("CELERY_TEST_BROKER_URL", "memory://")
        backend_url = os.getenv("CELERY_TEST_RESULT_BACKEND", "cache+memory://")
        logger.debug("Initializing Celery in testing mode with in-memory transports.")
    else:
        broker_url = settings.celery_broker_url
        backend_url = settings.celery_result_backend

    celery = Celery(
        "syncworker",
        broker=broker_url,
        backend=backend_url,
        include=["packages.syncworker.tasks"],
    )

    config = _build_base_config()
    if testing_mode:
        config.update(_build_testing_overrides())
    celery.conf.update(config)
    return celery


celery_app = _create_celery_app()


@worker_process_init.connect
def init_worker_process(**kwargs: Any) -> None:  # noqa: ARG001
    """Reset inherited database state and load the token key in each worker."""
    pg_connection_manager._engine = None
    pg_connection_manager._sessionmaker = None
    configure_logging(settings.LOG_LEVEL)
    SecretEncryption.initialize(settings.CONNECTOR_SECRETS_KEY)
    logger.info("Worker process initialized - database connection reset")
