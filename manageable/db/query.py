"""Select composition helpers used by the list/read/edit pipelines.

Each helper takes the statement built so far and returns a new one; none of
them executes SQL.  Names in user-supplied specs are resolved against the
entity's mapper, so an unknown column or relationship fails with a domain
error instead of reaching the database.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any

from sqlalchemy import Date, DateTime, Float, Numeric, Select, inspect
from sqlalchemy.orm import Mapper, joinedload, load_only, selectinload, subqueryload

from manageable.db.entity import is_named_scope
from manageable.errors import UnknownAssociationError, UnknownAttributeError, UnknownScopeError
from manageable.models.enums import LoadingStrategy, SemanticType

_LOADERS = {
    LoadingStrategy.SELECTIN: selectinload,
    LoadingStrategy.JOINED: joinedload,
    LoadingStrategy.SUBQUERY: subqueryload,
}

_DIRECTIONS = {"asc", "desc"}


def mapper_for(entity: Any) -> Mapper | None:
    """Return the ORM mapper of *entity*, or ``None`` for unmapped types."""
    if not isinstance(entity, type):
        return None
    return inspect(entity, raiseerr=False)


def entity_of(scope: Select) -> type:
    """Return the primary entity a ``select(Entity)`` statement loads."""
    return scope.column_descriptions[0]["entity"]


def semantic_type_of(entity: type, name: str) -> SemanticType | None:
    """Classify a column attribute for input coercion; ``None`` when it is not a column."""
    mapper = mapper_for(entity)
    if mapper is None or name not in mapper.column_attrs:
        return None
    column_type = mapper.column_attrs[name].columns[0].type
    # DateTime before Date, Float before Numeric (Float subclasses Numeric)
    if isinstance(column_type, DateTime):
        return SemanticType.DATETIME
    if isinstance(column_type, Date):
        return SemanticType.DATE
    if isinstance(column_type, Float):
        return SemanticType.FLOAT
    if isinstance(column_type, Numeric):
        return SemanticType.DECIMAL
    return SemanticType.OTHER


def _column(entity: type, name: str) -> Any:
    mapper = mapper_for(entity)
    if mapper is None or name not in mapper.column_attrs:
        raise UnknownAttributeError(entity, name)
    return getattr(entity, name)


# -- Order -------------------------------------------------------------------


def order_clauses(entity: type, spec: Any) -> list[Any]:
    """Translate an order spec into ORDER BY clauses.

    Accepts ``"name"``, ``"name DESC"``, ``"name, created_at desc"``,
    ``{"name": "desc"}``, SQLAlchemy expressions, or a list of any of these.
    """
    if spec is None:
        return []
    if isinstance(spec, str):
        return [_parse_order_term(entity, term) for term in spec.split(",") if term.strip()]
    if isinstance(spec, Mapping):
        clauses = []
        for name, direction in spec.items():
            clauses.append(_directed(entity, str(name), str(direction or "asc")))
        return clauses
    if isinstance(spec, list | tuple):
        clauses = []
        for item in spec:
            clauses.extend(order_clauses(entity, item))
        return clauses
    return [spec]


def _parse_order_term(entity: type, term: str) -> Any:
    parts = term.split()
    if len(parts) == 1:
        return _column(entity, parts[0])
    if len(parts) == 2:
        return _directed(entity, parts[0], parts[1])
    msg = f"Invalid order term: {term!r}"
    raise ValueError(msg)


def _directed(entity: type, name: str, direction: str) -> Any:
    direction = direction.lower()
    if direction not in _DIRECTIONS:
        msg = f"Invalid order direction for '{name}': {direction!r}"
        raise ValueError(msg)
    column = _column(entity, name)
    return column.desc() if direction == "desc" else column.asc()


def apply_order(scope: Select, entity: type, spec: Any) -> Select:
    clauses = order_clauses(entity, spec)
    return scope.order_by(*clauses) if clauses else scope


# -- Named scopes --------------------------------------------------------------


def parse_scopes(spec: Any, evaluate: Callable[[Any], Any] = lambda value: value) -> dict[str, tuple]:
    """Normalize a scopes spec to ``{name: args}``.

    Accepts a name, ``{name: arg}``, ``{name: [args]}``, a list of these, or
    deferred values (resolved through *evaluate*).  A later entry for the
    same name replaces the earlier one.
    """
    spec = evaluate(spec)
    if spec is None:
        return {}
    items = [spec] if isinstance(spec, str | Mapping) else list(spec)

    scopes: dict[str, tuple] = {}
    for item in items:
        item = evaluate(item)
        if item is None:
            continue
        if isinstance(item, str):
            scopes[item] = ()
        elif isinstance(item, Mapping):
            for name, args in item.items():
                scopes[str(name)] = tuple(args) if isinstance(args, list | tuple) else (args,)
        elif isinstance(item, list | tuple):
            scopes.update(parse_scopes(item, evaluate))
        else:
            msg = f"Invalid scope spec: {item!r}"
            raise ValueError(msg)
    return scopes


def apply_scopes(scope: Select, entity: type, scopes: Mapping[str, tuple]) -> Select:
    for name, args in scopes.items():
        scope_fn = getattr(entity, name, None)
        if not is_named_scope(scope_fn):
            raise UnknownScopeError(entity, name)
        scope = scope_fn(scope, *args)
    return scope


# -- Eager loading -------------------------------------------------------------


def _iter_associations(spec: Any) -> Iterator[tuple[str, Any]]:
    if spec is None:
        return
    if isinstance(spec, str):
        yield spec, None
    elif isinstance(spec, Mapping):
        for name, nested in spec.items():
            yield str(name), nested
    else:
        for item in spec:
            yield from _iter_associations(item)


def loader_options(
    entity: type,
    associations: Any,
    strategy: LoadingStrategy,
    parent: Any = None,
) -> list[Any]:
    """Build loader options for *associations*, recursing into nested specs.

    ``{"songs": "artist"}`` loads ``songs`` and, through them, ``artist``.
    """
    mapper = mapper_for(entity)
    options = []
    for name, nested in _iter_associations(associations):
        if mapper is None or name not in mapper.relationships:
            raise UnknownAssociationError(entity, name)
        attribute = getattr(entity, name)
        if parent is None:
            loader = _LOADERS[strategy](attribute)
        else:
            loader = getattr(parent, _LOADERS[strategy].__name__)(attribute)

        children = loader_options(mapper.relationships[name].mapper.class_, nested, strategy, loader)
        options.extend(children or [loader])
    return options


def apply_includes(scope: Select, entity: type, associations: Any, strategy: LoadingStrategy) -> Select:
    options = loader_options(entity, associations, strategy)
    return scope.options(*options) if options else scope


# -- Column selection ----------------------------------------------------------


def apply_select(scope: Select, entity: type, columns: Any) -> Select:
    """Load only *columns* (plus the primary key); other columns load on access."""
    if not columns:
        return scope
    if isinstance(columns, str):
        columns = [columns]
    attributes = [_column(entity, str(name)) for name in columns]
    return scope.options(load_only(*attributes))
