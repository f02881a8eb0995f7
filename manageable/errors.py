"""Domain exceptions raised by managers, adapters and the configuration registry.

Each exception also derives from the closest builtin so callers can catch
broadly (``LookupError``, ``ValueError``) and translate to transport-level
errors at the presentation boundary -- that translation is never done here.
"""

from __future__ import annotations

from typing import Any


class ManagerError(Exception):
    """Base class for all manageable errors."""


class ConfigurationError(ManagerError, ValueError):
    """Raised at setup time for an invalid adapter, strategy or option."""


class AuthorizationDenied(ManagerError, PermissionError):
    """Raised when the acting user may not perform *action* on *record*."""

    def __init__(self, action: str, record: Any, user: Any = None) -> None:
        self.action = action
        self.record = record
        self.user = user
        subject = record.__name__ if isinstance(record, type) else type(record).__name__
        super().__init__(f"Not authorized to {action} {subject}")


class RecordNotFound(ManagerError, LookupError):
    """Raised when no record matches the requested id within the scope."""

    def __init__(self, entity: type, record_id: Any) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity.__name__} with id={record_id!r} not found")


class PersistenceFailed(ManagerError):
    """Raised when the backend refuses to write or destroy a record.

    The record's accumulated errors stay on ``record.errors``.
    """

    def __init__(self, record: Any, message: str | None = None) -> None:
        self.record = record
        super().__init__(message or f"Failed to persist {type(record).__name__}")


class ValidationFailed(PersistenceFailed):
    """Raised when a record fails its own validation before being written."""

    def __init__(self, record: Any) -> None:
        errors = getattr(record, "errors", None)
        detail = f": {errors.full_messages()}" if errors else ""
        super().__init__(record, f"Validation failed for {type(record).__name__}{detail}")


class UnknownScopeError(ManagerError, LookupError):
    """Raised when a scope name is not a ``@named_scope`` of the entity."""

    def __init__(self, entity: type, name: str) -> None:
        super().__init__(f"{entity.__name__} has no named scope '{name}'")


class UnknownAttributeError(ManagerError, AttributeError):
    """Raised when assigning an attribute the entity does not define."""

    def __init__(self, entity: type, name: str) -> None:
        super().__init__(f"Unknown attribute '{name}' for {entity.__name__}")


class UnknownAssociationError(ManagerError, LookupError):
    """Raised when an eager-load spec names a relationship the entity lacks."""

    def __init__(self, entity: type, name: str) -> None:
        super().__init__(f"{entity.__name__} has no relationship '{name}'")
