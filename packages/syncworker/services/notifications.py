"""
Notification coordinator for events raised by sync runs.

The sync pipeline emits two events: a release was published (a new
release block appeared) and a piece of content was updated. Delivery is
delegated to channels; the coordinator only fans the payload out and
aggregates sent/failed counts. Channel failures never propagate to the
sync run.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

import httpx

from packages.docshub.config import settings
from packages.docshub.dtos.sync import NotificationResult
from packages.docshub.metrics.sync_metrics import record_notification

logger = logging.getLogger(__name__)


@dataclass
class NotificationPayload:
    type: str
    title: str
    body: str
    url: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReleasePublishedContext:
    release_id: str
    version: str
    content: str
    document_url: str
    document_title: str
    teams: list[str]


@dataclass
class ContentUpdateContext:
    content_type: str  # "document" or "blog"
    content_id: str
    content_title: str
    content_url: str
    updated_at: datetime


class NotificationChannel(Protocol):
    name: str

    async def send(self, payload: NotificationPayload) -> dict[str, Any]:
        """Deliver a payload; returns ``{"channel", "sent", "failed"}``."""
        ...


class DeliveryError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class WebhookChannel:
    """POSTs notification payloads as JSON to a webhook endpoint.

    Each delivery gets a bounded timeout and up to ``max_attempts`` tries
    with exponential backoff. 4xx responses are not retried.
    """

    name = "webhook"

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        backoff: float | None = None,
    ):
        self.url = url
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS
        self.max_attempts = max_attempts or settings.NOTIFICATION_MAX_ATTEMPTS
        self.backoff = settings.NOTIFICATION_BACKOFF_SECONDS if backoff is None else backoff
        self._client = client

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> None:
        delay = self.backoff
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await client.post(self.url, json=body, timeout=self.timeout)
            except httpx.HTTPError as e:
                error = DeliveryError(f"Webhook request failed: {e}")
            else:
                if response.is_success:
                    return
                error = DeliveryError(f"Webhook returned {response.status_code}", status_code=response.status_code)
                if 400 <= response.status_code < 500:
                    raise error

            if attempt == self.max_attempts:
                raise error
            logger.warning(f"Notification delivery attempt {attempt}/{self.max_attempts} failed: {error}")
            await asyncio.sleep(delay)
            delay *= 2

    async def send(self, payload: NotificationPayload) -> dict[str, Any]:
        body = asdict(payload)
        try:
            if self._client is not None:
                await self._post(self._client, body)
            else:
                async with httpx.AsyncClient() as client:
                    await self._post(client, body)
        except DeliveryError as e:
            logger.error(f"Failed to deliver {payload.type} notification: {e}")
            return {"channel": self.name, "sent": 0, "failed": 1, "error": str(e)}
        return {"channel": self.name, "sent": 1, "failed": 0}


class NotificationCoordinator:
    """Fans notification payloads out to every configured channel."""

    def __init__(self, channels: list[NotificationChannel] | None = None):
        self.channels = list(channels or [])

    async def send(self, payload: NotificationPayload) -> NotificationResult:
        if not self.channels:
            logger.debug(f"No notification channels configured; dropping {payload.type}")
            return NotificationResult(success=False)

        results = await asyncio.gather(*(channel.send(payload) for channel in self.channels), return_exceptions=True)

        normalized: list[dict[str, Any]] = []
        for channel, result in zip(self.channels, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(f"Notification channel {channel.name} raised: {result}")
                normalized.append({"channel": channel.name, "sent": 0, "failed": 1, "error": str(result)})
            else:
                normalized.append(result)

        total_sent = sum(r.get("sent", 0) for r in normalized)
        total_failed = sum(r.get("failed", 0) for r in normalized)
        record_notification(payload.type, "sent" if total_sent else "failed")
        return NotificationResult(
            success=total_sent > 0,
            results=normalized,
            total_sent=total_sent,
            total_failed=total_failed,
        )

    async def notify_release_published(self, context: ReleasePublishedContext) -> NotificationResult:
        teams = ", ".join(context.teams)
        return await self.send(
            NotificationPayload(
                type="release_published",
                title=f"New release {context.version}",
                body=f"{context.document_title} has a new release for {teams}",
                url=context.document_url,
                data={
                    "releaseId": context.release_id,
                    "version": context.version,
                    "teams": list(context.teams),
                    "content": context.content,
                },
            )
        )

    async def notify_content_update(self, context: ContentUpdateContext) -> NotificationResult:
        return await self.send(
            NotificationPayload(
                type="content_update",
                title="Content updated",
                body=f"{context.content_title} was updated",
                url=context.content_url,
                data={
                    "contentType": context.content_type,
                    "contentId": context.content_id,
                    "updatedAt": context.updated_at.isoformat(),
                },
            )
        )


def create_notification_coordinator() -> NotificationCoordinator:
    channels: list[NotificationChannel] = []
    if settings.NOTIFICATION_WEBHOOK_URL:
        channels.append(WebhookChannel(settings.NOTIFICATION_WEBHOOK_URL))
    return NotificationCoordinator(channels)
