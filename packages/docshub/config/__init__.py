# docshub/config/__init__.py
"""
Configuration module for the sync pipeline.
Exposes a single ``settings`` instance combining all config classes.
"""

from .postgres import PostgresConfig, postgres_config
from .sync import SyncConfig


class Settings(SyncConfig):
    """Unified settings used by the sync worker and its tasks."""


settings = Settings()

__all__ = ["PostgresConfig", "SyncConfig", "Settings", "settings", "postgres_config"]
