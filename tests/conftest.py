"""Shared test configuration and fixtures."""

import os
from collections.abc import Callable
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

from cryptography.fernet import Fernet

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("POSTGRES_PASSWORD", "test")

import fakeredis.aioredis  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from packages.docshub.database.models import SourceType  # noqa: E402
from packages.docshub.utils.encryption import SecretEncryption  # noqa: E402


@pytest.fixture()
def mock_session():
    """Create a mock async session."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture()
def make_repository() -> Callable[..., SimpleNamespace]:
    """Factory for lightweight Repository stand-ins."""

    def _make(**overrides: Any) -> SimpleNamespace:
        values: dict[str, Any] = {
            "id": "repo-1",
            "name": "Handbook",
            "slug": "handbook",
            "source": SourceType.GITHUB,
            "owner": "acme",
            "repo": "handbook",
            "organization": None,
            "project": None,
            "azure_repository_id": None,
            "branch": "main",
            "base_path": "",
            "pat_encrypted": None,
            "sync_frequency": 3600,
            "enabled": True,
            "sync_images": False,
            "last_sync_at": None,
            "last_sync_status": None,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    return _make


@pytest.fixture()
def session_factory(mock_session):
    """Session factory yielding the same mock session on every call."""

    @asynccontextmanager
    async def _factory():
        yield mock_session

    return _factory


@pytest.fixture()
def encryption_key():
    """Initialize secret encryption with a fresh key for one test."""
    key = Fernet.generate_key().decode()
    SecretEncryption.initialize(key)
    yield key
    SecretEncryption.reset()


@pytest_asyncio.fixture()
async def fake_redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()
