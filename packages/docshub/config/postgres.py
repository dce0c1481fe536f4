"""
PostgreSQL configuration and connection management.
"""

import logging
import os
from typing import Any
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class PostgresConfig(BaseSettings):
    """PostgreSQL-specific configuration settings."""

    # Database URL - can be set directly or constructed from components
    DATABASE_URL: str | None = Field(default=None, description="PostgreSQL database URL")

    POSTGRES_HOST: str = Field(default="localhost", description="PostgreSQL host")
    POSTGRES_PORT: int = Field(default=5432, description="PostgreSQL port")
    POSTGRES_DB: str = Field(default="docshub", description="PostgreSQL database name")
    POSTGRES_USER: str = Field(default="docshub", description="PostgreSQL username")
    POSTGRES_PASSWORD: str = Field(default="", description="PostgreSQL password")

    DB_POOL_SIZE: int = Field(default=10, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=20, description="Maximum overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Pool timeout in seconds")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Connection recycle time in seconds")
    DB_POOL_PRE_PING: bool = Field(default=True, description="Test connections before use")

    DB_ECHO: bool = Field(default=False, description="Echo SQL queries (debug mode)")
    DB_QUERY_TIMEOUT: int = Field(default=30, description="Query timeout in seconds")

    DB_RETRY_LIMIT: int = Field(default=3, description="Number of connection retries")
    DB_RETRY_INTERVAL: float = Field(default=0.5, description="Retry interval in seconds")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def construct_database_url(cls, v: str | None) -> str:
        """Construct DATABASE_URL from components if not provided."""
        if v:
            return v

        host = os.environ.get("POSTGRES_HOST", "localhost")
        port = os.environ.get("POSTGRES_PORT", "5432")
        db = os.environ.get("POSTGRES_DB", "docshub")
        user = os.environ.get("POSTGRES_USER", "docshub")
        password = os.environ.get("POSTGRES_PASSWORD", "")

        if not password:
            logger.warning("POSTGRES_PASSWORD not set - using empty password")

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @property
    def async_database_url(self) -> str:
        """Get async version of database URL for SQLAlchemy."""
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL not configured")

        parsed = urlparse(self.DATABASE_URL)
        async_scheme = "postgresql+asyncpg" if parsed.scheme == "postgresql" else parsed.scheme
        return self.DATABASE_URL.replace(f"{parsed.scheme}://", f"{async_scheme}://", 1)

    def get_pool_kwargs(self) -> dict[str, Any]:
        """Get SQLAlchemy connection pool keyword arguments."""
        return {
            "pool_size": self.DB_POOL_SIZE,
            "max_overflow": self.DB_MAX_OVERFLOW,
            "pool_timeout": self.DB_POOL_TIMEOUT,
            "pool_recycle": self.DB_POOL_RECYCLE,
            "pool_pre_ping": self.DB_POOL_PRE_PING,
        }

    def get_connect_args(self) -> dict[str, Any]:
        """Get asyncpg connection arguments."""
        return {
            "server_settings": {
                "application_name": "docshub-sync",
                "statement_timeout": f"{self.DB_QUERY_TIMEOUT * 1000}",
                "lock_timeout": "5000",
            },
        }


postgres_config = PostgresConfig()
