"""Instrumented HTTP client for source repository APIs.

Fetchers receive an ``httpx.AsyncClient`` built here. Request and response
logging is done with client event hooks so nothing outside the client is
patched. Credentials live in headers, which are never logged.
"""

import logging
import time

import httpx

from packages.docshub.config import settings

logger = logging.getLogger(__name__)

_STARTED_AT = "docshub.started_at"


async def _log_request(request: httpx.Request) -> None:
    request.extensions[_STARTED_AT] = time.perf_counter()
    logger.debug(f"{request.method} {request.url.host}{request.url.path}")


async def _log_response(response: httpx.Response) -> None:
    request = response.request
    started = request.extensions.get(_STARTED_AT)
    elapsed_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
    message = f"{request.method} {request.url.host}{request.url.path} -> {response.status_code} ({elapsed_ms:.0f}ms)"
    if response.status_code >= 400:
        logger.warning(message)
    else:
        logger.debug(message)


def create_http_client(
    timeout: float | None = None,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build an AsyncClient with request logging and a per-request timeout.

    Args:
        timeout: Seconds per request, defaults to SYNC_HTTP_TIMEOUT_SECONDS
        headers: Default headers sent with every request
        transport: Optional transport override (tests use httpx.MockTransport)
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.SYNC_HTTP_TIMEOUT_SECONDS),
        headers=headers,
        transport=transport,
        follow_redirects=True,
        event_hooks={"request": [_log_request], "response": [_log_response]},
    )
