"""Entity-side support for managed SQLAlchemy models.

``ManagedEntity`` is a plain mixin for declarative models.  It gives records
an ``errors`` collection and two hooks the backend consults:

- ``validate()`` adds messages to ``self.errors``; a record with errors is
  not written.
- ``can_destroy()`` returns ``False`` (after adding an error) to refuse a
  delete.

``named_scope`` marks classmethods that the list action may apply by name,
so user-supplied scope names can only reach explicitly published filters.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

BASE = "base"


class RecordErrors:
    """Validation messages keyed by attribute name (``"base"`` for the record)."""

    def __init__(self) -> None:
        self._messages: dict[str, list[str]] = {}

    def add(self, attribute: str, message: str) -> None:
        self._messages.setdefault(attribute, []).append(message)

    def clear(self) -> None:
        self._messages.clear()

    def __getitem__(self, attribute: str) -> list[str]:
        return list(self._messages.get(attribute, []))

    def __contains__(self, attribute: object) -> bool:
        return bool(self._messages.get(attribute))  # type: ignore[arg-type]

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for attribute, messages in self._messages.items():
            for message in messages:
                yield attribute, message

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def __bool__(self) -> bool:
        return len(self) > 0

    def as_dict(self) -> dict[str, list[str]]:
        return {attribute: list(messages) for attribute, messages in self._messages.items() if messages}

    def full_messages(self) -> list[str]:
        """Human-readable messages, e.g. ``"Name can't be blank"``."""
        messages = []
        for attribute, message in self:
            if attribute == BASE:
                messages.append(message)
            else:
                messages.append(f"{attribute.replace('_', ' ').capitalize()} {message}")
        return messages

    def __repr__(self) -> str:
        return f"RecordErrors({self.as_dict()})"


class ManagedEntity:
    """Mixin adding ``errors`` and validation / destroy hooks to a model."""

    @property
    def errors(self) -> RecordErrors:
        # Kept outside the mapped state so a rollback (which expires mapped
        # attributes) never discards the messages.
        errors = self.__dict__.get("_manageable_errors")
        if errors is None:
            errors = RecordErrors()
            self.__dict__["_manageable_errors"] = errors
        return errors

    def validate(self) -> None:
        """Add messages to ``self.errors`` for invalid state.  No-op by default."""

    def can_destroy(self) -> bool:
        """Return ``False`` to refuse a delete.  Add the reason to ``self.errors``."""
        return True

    def is_valid(self) -> bool:
        self.errors.clear()
        self.validate()
        return not self.errors


def named_scope(fn: Callable[..., Any]) -> classmethod:
    """Publish a classmethod ``fn(cls, stmt, *args) -> Select`` as a named scope.

    Example::

        class Album(Base, ManagedEntity):
            @named_scope
            def released_in_year(cls, stmt, year):
                return stmt.where(extract("year", cls.released_at) == int(year))
    """
    fn.__named_scope__ = True  # type: ignore[attr-defined]
    return classmethod(fn)


def is_named_scope(candidate: Any) -> bool:
    return callable(candidate) and getattr(candidate, "__named_scope__", False) is True
