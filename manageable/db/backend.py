"""Persistence backend over a synchronous SQLAlchemy ``Session``.

The backend owns every call into the session: building and assigning
records, lookups by primary key, validated writes and destroys, and the
transaction boundary used by ``create``, ``update`` and ``delete``.  It also
answers the type-schema questions the attribute normalizer asks.

Write semantics:

- ``save_or_fail`` / ``destroy_or_fail`` flush inside the caller's unit and
  raise ``ValidationFailed`` / ``PersistenceFailed``.
- ``atomic()`` runs its block inside a SAVEPOINT.  A failure rolls back only
  what the block did and re-raises; work the caller had pending before the
  block is kept.  The surrounding transaction is committed (or, on failure,
  rolled back) only when ``commit`` is true, which by default means the
  session was idle when the block started.
- ``save`` / ``destroy`` are the non-raising counterparts: each runs the
  ``*_or_fail`` call in its own ``atomic()`` unit and returns a bool.

Opening a SAVEPOINT flushes pending changes first, so records must be
modified inside the unit for a failure to revert them.  A rolled-back
SAVEPOINT expires the records it touched, so attribute values revert to
their stored state; the messages on ``record.errors`` are kept.

SQLite's ``pysqlite`` driver needs SQLAlchemy's documented SAVEPOINT setup
(``isolation_level = None`` on connect and an explicit ``BEGIN``).
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import Select, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import RelationshipProperty, Session
from sqlalchemy.orm.base import NO_VALUE

from manageable.db.entity import BASE
from manageable.db.query import entity_of, mapper_for, semantic_type_of
from manageable.errors import PersistenceFailed, RecordNotFound, UnknownAttributeError, ValidationFailed
from manageable.models.enums import SemanticType
from manageable.normalizer import NESTED_ATTRIBUTES_SUFFIX

_TRUE_VALUES = {True, 1, "1", "true", "True", "t", "yes"}


def _primary_key_matches(record: Any, record_id: Any) -> bool:
    identity = inspect(record).identity
    return identity is not None and len(identity) == 1 and str(identity[0]) == str(record_id)


class SqlAlchemyBackend:
    """Backend bound to one ``Session`` for the lifetime of a manager instance."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # -- Type schema -------------------------------------------------------------

    def association_target_type(self, entity: type, name: str) -> type | None:
        mapper = mapper_for(entity)
        if mapper is None or name not in mapper.relationships:
            return None
        return mapper.relationships[name].mapper.class_

    def attribute_semantic_type(self, entity: type, name: str) -> SemanticType | None:
        return semantic_type_of(entity, name)

    # -- Records -----------------------------------------------------------------

    def new_unsaved(self, entity: type, attributes: Mapping[str, Any]) -> Any:
        record = entity()
        self.assign_attributes(record, attributes)
        return record

    def assign_attributes(self, record: Any, attributes: Mapping[str, Any]) -> None:
        """Assign plain attributes and nested ``*_attributes`` association input."""
        entity = type(record)
        mapper = mapper_for(entity)
        for key, value in attributes.items():
            if key.endswith(NESTED_ATTRIBUTES_SUFFIX) and mapper is not None:
                association = key.removesuffix(NESTED_ATTRIBUTES_SUFFIX)
                if association in mapper.relationships:
                    self._assign_nested(record, mapper.relationships[association], value)
                    continue
            if not self._is_assignable(entity, key):
                raise UnknownAttributeError(entity, key)
            setattr(record, key, value)

    @staticmethod
    def _is_assignable(entity: type, key: str) -> bool:
        mapper = mapper_for(entity)
        if mapper is not None and key in mapper.all_orm_descriptors and not key.startswith("_"):
            return True
        candidate = getattr(entity, key, None)
        return isinstance(candidate, property) and candidate.fset is not None

    def _assign_nested(self, record: Any, relationship: RelationshipProperty, value: Any) -> None:
        target = relationship.mapper.class_
        if relationship.uselist:
            # Index-keyed mappings ({"0": {...}, "1": {...}}) are accepted as lists
            items = list(value.values()) if isinstance(value, Mapping) else list(value or [])
            collection = getattr(record, relationship.key)
            for item in items:
                self._assign_child(collection, target, dict(item))
            return

        attrs = dict(value or {})
        child_id = attrs.pop("id", None)
        destroy = attrs.pop("_destroy", False) in _TRUE_VALUES
        current = getattr(record, relationship.key)
        if current is not None and (child_id is None or _primary_key_matches(current, child_id)):
            if destroy:
                setattr(record, relationship.key, None)
                self._delete_if_persistent(current)
            else:
                self.assign_attributes(current, attrs)
        elif child_id is not None:
            raise RecordNotFound(target, child_id)
        elif not destroy:
            setattr(record, relationship.key, self.new_unsaved(target, attrs))

    def _assign_child(self, collection: Any, target: type, attrs: dict[str, Any]) -> None:
        child_id = attrs.pop("id", None)
        destroy = attrs.pop("_destroy", False) in _TRUE_VALUES
        if child_id is None:
            if not destroy:
                collection.append(self.new_unsaved(target, attrs))
            return

        child = next((c for c in collection if _primary_key_matches(c, child_id)), None)
        if child is None:
            raise RecordNotFound(target, child_id)
        if destroy:
            collection.remove(child)
            self._delete_if_persistent(child)
        else:
            self.assign_attributes(child, attrs)

    def _delete_if_persistent(self, record: Any) -> None:
        if inspect(record).persistent:
            self.session.delete(record)

    def find_by_id(self, scope: Select, record_id: Any) -> Any:
        """Return the record with *record_id* within *scope* or raise ``RecordNotFound``."""
        entity = entity_of(scope)
        primary_key = mapper_for(entity).primary_key
        if len(primary_key) != 1:
            msg = f"{entity.__name__} has a composite primary key; find_by_id needs a single column"
            raise ValueError(msg)

        record = self.session.scalars(scope.where(primary_key[0] == record_id)).unique().one_or_none()
        if record is None:
            raise RecordNotFound(entity, record_id)
        return record

    # -- Validation --------------------------------------------------------------

    def validate(self, record: Any) -> bool:
        """Run the record's validation and that of new or changed nested children."""
        if not hasattr(record, "is_valid"):
            return True
        with self.session.no_autoflush:
            valid = record.is_valid()
            for name, child in self._pending_children(record):
                if hasattr(child, "is_valid") and not child.is_valid():
                    record.errors.add(name, "is invalid")
                    valid = False
        return valid

    def _pending_children(self, record: Any) -> Iterator[tuple[str, Any]]:
        state = inspect(record)
        for relationship in state.mapper.relationships:
            loaded = state.attrs[relationship.key].loaded_value
            if loaded is NO_VALUE or loaded is None:
                continue
            children = loaded if relationship.uselist else [loaded]
            for child in children:
                child_state = inspect(child)
                if child_state.transient or child_state.pending or child_state.modified:
                    yield relationship.key, child

    # -- Writes ------------------------------------------------------------------

    def is_idle(self) -> bool:
        """True when the session has no open transaction and no unflushed changes."""
        session = self.session
        return not (session.in_transaction() or session.new or session.dirty or session.deleted)

    def save_or_fail(self, record: Any) -> None:
        if not self.validate(record):
            raise ValidationFailed(record)
        self.session.add(record)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self._add_base_error(record, str(exc.orig))
            raise PersistenceFailed(record, f"Failed to persist {type(record).__name__}: {exc.orig}") from exc

    def save(self, record: Any, *, commit: bool | None = None) -> bool:
        try:
            with self.atomic(commit=commit):
                self.save_or_fail(record)
        except PersistenceFailed as exc:
            logger.debug("Save failed: {}", exc)
            return False
        return True

    def destroy_or_fail(self, record: Any) -> None:
        can_destroy = getattr(record, "can_destroy", None)
        if can_destroy is not None:
            record.errors.clear()
            if not can_destroy():
                raise PersistenceFailed(record, f"{type(record).__name__} refused to be destroyed")
        self.session.delete(record)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self._add_base_error(record, str(exc.orig))
            raise PersistenceFailed(record, f"Failed to destroy {type(record).__name__}: {exc.orig}") from exc

    def destroy(self, record: Any, *, commit: bool | None = None) -> bool:
        try:
            with self.atomic(commit=commit):
                self.destroy_or_fail(record)
        except PersistenceFailed as exc:
            logger.debug("Destroy failed: {}", exc)
            return False
        return True

    @staticmethod
    def _add_base_error(record: Any, message: str) -> None:
        errors = getattr(record, "errors", None)
        if errors is not None:
            errors.add(BASE, message)

    @contextmanager
    def atomic(self, *, commit: bool | None = None) -> Iterator[Session]:
        """Run the block in a SAVEPOINT; on any exception roll it back and re-raise.

        ``commit`` defaults to ``is_idle()`` on entry: a unit that opened the
        session's transaction also ends it.
        """
        if commit is None:
            commit = self.is_idle()
        try:
            with self.session.begin_nested():
                yield self.session
        except BaseException:
            logger.info("Atomic unit failed, rolling back")
            if commit:
                self.session.rollback()
            raise
        if commit:
            self.session.commit()
