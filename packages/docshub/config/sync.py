# docshub/config/sync.py

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncConfig(BaseSettings):
    """
    Settings for the repository sync worker.
    Timeouts are in seconds unless stated otherwise.
    """

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str | None = None
    CELERY_RESULT_BACKEND: str | None = None

    # Fernet key used to decrypt repository access tokens
    CONNECTOR_SECRETS_KEY: str | None = None

    # Local mirror root; images land under IMAGE_ROOT / "img" / <repository slug>
    IMAGE_ROOT: Path = Path("public")

    # Scheduler
    SYNC_CHECK_INTERVAL_SECONDS: int = Field(default=60, ge=5)
    SYNC_LOCK_TTL_SECONDS: int = Field(default=3600, ge=60)

    # Source repository APIs
    GITHUB_API_URL: str = "https://api.github.com"
    AZURE_DEVOPS_URL: str = "https://dev.azure.com"
    SYNC_HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0)

    # Notifications
    NOTIFICATION_WEBHOOK_URL: str | None = None
    NOTIFICATION_TIMEOUT_SECONDS: float = 30.0
    NOTIFICATION_MAX_ATTEMPTS: int = Field(default=3, ge=1)
    NOTIFICATION_BACKOFF_SECONDS: float = 1.0
    PORTAL_BASE_URL: str = "http://localhost:3000"

    # Search
    SEARCH_CACHE_PATTERN: str = "search:*"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def celery_broker_url(self) -> str:
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @property
    def celery_result_backend(self) -> str:
        return self.CELERY_RESULT_BACKEND or self.REDIS_URL

    @property
    def image_dir(self) -> Path:
        return self.IMAGE_ROOT / "img"
