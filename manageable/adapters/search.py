"""Predicate search: ``<column>_<predicate>`` filters plus explicit sorts.

Example options::

    {"name_cont": "blue", "released_at_gteq": "1990-01-01", "s": "name desc"}

Blank values and unknown columns are ignored.  An entity may limit the
searchable columns with a ``searchable_attributes`` class attribute.  The
``s`` / ``sorts`` key holds an order spec; when present the list action
skips its own default ordering.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, Select

from manageable.db.query import entity_of, mapper_for, order_clauses, semantic_type_of
from manageable.models.enums import DatetimePrecision, SemanticType
from manageable.normalizer import parse_datetime
from manageable.registry import get_configuration

SORT_KEYS = ("s", "sorts")
NULL_PREDICATES = ("null", "not_null")

PREDICATES: dict[str, Callable[[Any, Any], ColumnElement[bool]]] = {
    "eq": lambda column, value: column == value,
    "not_eq": lambda column, value: column != value,
    "cont": lambda column, value: column.contains(value, autoescape=True),
    "not_cont": lambda column, value: ~column.contains(value, autoescape=True),
    "i_cont": lambda column, value: column.icontains(value, autoescape=True),
    "start": lambda column, value: column.startswith(value, autoescape=True),
    "end": lambda column, value: column.endswith(value, autoescape=True),
    "lt": lambda column, value: column < value,
    "lteq": lambda column, value: column <= value,
    "gt": lambda column, value: column > value,
    "gteq": lambda column, value: column >= value,
    "in": lambda column, value: column.in_(_as_list(value)),
    "not_in": lambda column, value: column.not_in(_as_list(value)),
    "null": lambda column, value: column.is_(None) if _truthy(value) else column.is_not(None),
    "not_null": lambda column, value: column.is_not(None) if _truthy(value) else column.is_(None),
}

# Longest suffix first so "name_not_eq" is not read as "name_not" + "eq"
_BY_LENGTH = sorted(PREDICATES, key=len, reverse=True)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list | tuple | set):
        return list(value)
    if isinstance(value, str):
        return [item.strip() for item in value.split(",")]
    return [value]


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes"}
    return bool(value)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | set | Mapping):
        return not value
    return False


def _coerce(entity: type, name: str, value: Any) -> Any:
    """Parse date text for date and datetime columns; other values are bound as given."""
    semantic_type = semantic_type_of(entity, name)
    if semantic_type not in (SemanticType.DATE, SemanticType.DATETIME):
        return value
    if isinstance(value, list | tuple | set):
        return [_coerce(entity, name, item) for item in value]
    parsed = parse_datetime(value, day_first=get_configuration().date_day_first, precision=DatetimePrecision.USEC)
    if parsed is None:
        return value
    return parsed.date() if semantic_type == SemanticType.DATE else parsed


def split_condition(key: str) -> tuple[str, str] | None:
    """Split ``"name_not_eq"`` into ``("name", "not_eq")``."""
    for predicate in _BY_LENGTH:
        suffix = f"_{predicate}"
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], predicate
    return None


class PredicateSearch:
    def apply_search(self, scope: Select, search: Mapping[str, Any] | None) -> tuple[Select, bool]:
        if not search:
            return scope, False

        entity = entity_of(scope)
        mapper = mapper_for(entity)
        searchable = getattr(entity, "searchable_attributes", None)
        has_sort = False

        for key, value in search.items():
            if key in SORT_KEYS:
                clauses = order_clauses(entity, value)
                if clauses:
                    scope = scope.order_by(*clauses)
                    has_sort = True
                continue
            if _is_blank(value):
                continue

            condition = split_condition(key)
            if condition is None:
                logger.debug("Search: ignoring unrecognised condition '{}'", key)
                continue
            name, predicate = condition
            if mapper is None or name not in mapper.column_attrs or (searchable is not None and name not in searchable):
                logger.debug("Search: ignoring condition on unsearchable column '{}'", name)
                continue
            if predicate not in NULL_PREDICATES:
                value = _coerce(entity, name, value)
            scope = scope.where(PREDICATES[predicate](getattr(entity, name), value))

        return scope, has_sort
