"""
Prometheus metrics for repository sync runs.
Recording helpers never raise; a metrics problem must not fail a sync.
"""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

registry = CollectorRegistry()

sync_runs_total = Counter(
    "docshub_sync_runs_total",
    "Repository sync runs by terminal status",
    ["repository", "status"],
    registry=registry,
)

sync_run_duration = Histogram(
    "docshub_sync_run_duration_seconds",
    "Repository sync run duration",
    ["repository"],
    buckets=(1, 5, 10, 30, 60, 120, 300, 600, 1800),
    registry=registry,
)

sync_content_changes_total = Counter(
    "docshub_sync_content_changes_total",
    "Content items added, modified or deleted by sync runs",
    ["repository", "change_type"],
    registry=registry,
)

sync_item_errors_total = Counter(
    "docshub_sync_item_errors_total",
    "Per-item errors skipped during sync runs",
    ["repository", "phase"],
    registry=registry,
)

syncs_in_progress = Gauge(
    "docshub_syncs_in_progress",
    "Sync runs currently holding a repository lock",
    registry=registry,
)

notifications_total = Counter(
    "docshub_notifications_total",
    "Notification deliveries by event and outcome",
    ["event", "outcome"],
    registry=registry,
)


def record_sync_finished(repository: str, status: str, duration_seconds: float) -> None:
    try:
        sync_runs_total.labels(repository=repository, status=status).inc()
        sync_run_duration.labels(repository=repository).observe(duration_seconds)
    except Exception as e:
        logger.warning(f"Failed to record sync metrics: {e}")


def record_content_changes(repository: str, added: int, modified: int, deleted: int) -> None:
    try:
        for change_type, count in (("added", added), ("modified", modified), ("deleted", deleted)):
            if count:
                sync_content_changes_total.labels(repository=repository, change_type=change_type).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record content change metrics: {e}")


def record_item_errors(repository: str, phase: str, count: int) -> None:
    if not count:
        return
    try:
        sync_item_errors_total.labels(repository=repository, phase=phase).inc(count)
    except Exception as e:
        logger.warning(f"Failed to record item error metrics: {e}")


def record_notification(event: str, outcome: str) -> None:
    try:
        notifications_total.labels(event=event, outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record notification metrics: {e}")
