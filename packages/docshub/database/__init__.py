"""Database models, session management and data-access classes."""

from .exceptions import (
    DatabaseOperationError,
    EntityNotFoundError,
    InvalidStateError,
    RepositoryError,
    ValidationError,
)
from .postgres_database import pg_connection_manager

__all__ = [
    "DatabaseOperationError",
    "EntityNotFoundError",
    "InvalidStateError",
    "RepositoryError",
    "ValidationError",
    "pg_connection_manager",
]
