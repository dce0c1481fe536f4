"""Domain-specific exceptions for repository operations.

Data-access classes raise these instead of leaking SQLAlchemy errors so
callers can tell a missing row apart from a failed statement.
"""


class RepositoryError(Exception):
    """Base exception for all data-access errors."""


class EntityNotFoundError(RepositoryError):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with ID '{entity_id}' not found")


class ValidationError(RepositoryError):
    """Raised when validation fails for an operation."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.message = message
        self.field = field
        if field:
            super().__init__(f"Validation error on field '{field}': {message}")
        else:
            super().__init__(f"Validation error: {message}")


class DatabaseOperationError(RepositoryError):
    """Raised when a database operation fails."""

    def __init__(self, operation: str, entity_type: str, details: str | None = None) -> None:
        self.operation = operation
        self.entity_type = entity_type
        self.details = details
        message = f"Failed to {operation} {entity_type}"
        if details:
            message += f": {details}"
        super().__init__(message)


class InvalidStateError(RepositoryError):
    """Raised when an entity is not in a state that allows the operation."""

    def __init__(self, message: str, current_state: str | None = None) -> None:
        self.current_state = current_state
        super().__init__(message)
