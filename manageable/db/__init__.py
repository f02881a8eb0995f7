"""SQLAlchemy persistence backend and entity support."""

from manageable.db.backend import SqlAlchemyBackend
from manageable.db.entity import ManagedEntity, RecordErrors, named_scope

__all__ = ["ManagedEntity", "RecordErrors", "SqlAlchemyBackend", "named_scope"]
