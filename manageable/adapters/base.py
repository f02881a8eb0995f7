"""Collaborator adapter interfaces.

A manager type holds exactly one adapter per category, chosen when the
class is defined.  Custom adapters only need to satisfy these protocols;
the ``Null*`` implementations are used when a category is not configured
and make the corresponding pipeline stage a no-op.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import Select, select


@runtime_checkable
class AuthorizationAdapter(Protocol):
    """Decides whether the acting user may perform an action."""

    def authorize(self, user: Any, action: str, record: Any) -> None:
        """Raise ``AuthorizationDenied`` unless *user* may perform *action* on *record*.

        *record* is an entity type for the list action and an instance otherwise.
        """
        ...

    def scoped_query(self, user: Any, entity: type) -> Select:
        """Return a ``select(entity)`` restricted to the rows *user* may see."""
        ...


@runtime_checkable
class SearchAdapter(Protocol):
    def apply_search(self, scope: Select, search: Mapping[str, Any] | None) -> tuple[Select, bool]:
        """Apply search options; the flag is ``True`` when they included explicit sorts."""
        ...


@runtime_checkable
class PaginationAdapter(Protocol):
    def paginate(self, scope: Select, page_number: int | None, page_size: int | None) -> Select: ...


class NullAuthorization:
    """Allows everything; the scope is every row of the entity."""

    def authorize(self, user: Any, action: str, record: Any) -> None:
        return None

    def scoped_query(self, user: Any, entity: type) -> Select:
        return select(entity)


class NullSearch:
    def apply_search(self, scope: Select, search: Mapping[str, Any] | None) -> tuple[Select, bool]:
        return scope, False


class NullPagination:
    def paginate(self, scope: Select, page_number: int | None, page_size: int | None) -> Select:
        return scope
