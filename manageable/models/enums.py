"""Shared enumerations used across managers, adapters and the registry."""

from __future__ import annotations

from enum import StrEnum

# -- Actions -----------------------------------------------------------------


class Action(StrEnum):
    """Action identifiers.  Values match the public manager method names."""

    LIST = "list"
    READ = "read"
    NEW = "new"
    CREATE = "create"
    EDIT = "edit"
    UPDATE = "update"
    DELETE = "delete"


ALL_ACTIONS = "*"
"""Pass as ``actions=ALL_ACTIONS`` to compose every action into a manager."""

ALL = "all"
"""Defaults registry key matching every action."""


# -- Eager loading -------------------------------------------------------------


class LoadingStrategy(StrEnum):
    """SQLAlchemy relationship loader used for eager loading."""

    SELECTIN = "selectin"
    JOINED = "joined"
    SUBQUERY = "subquery"


# -- Schema ------------------------------------------------------------------


class SemanticType(StrEnum):
    """Attribute type tags the normalizer cares about."""

    DATE = "date"
    DATETIME = "datetime"
    DECIMAL = "decimal"
    FLOAT = "float"
    OTHER = "other"


class DatetimePrecision(StrEnum):
    """Finest component kept when parsing datetime attribute values."""

    DAY = "day"
    HOUR = "hour"
    MIN = "min"
    SEC = "sec"
    USEC = "usec"


# -- Adapters ----------------------------------------------------------------


class AuthorizationLibrary(StrEnum):
    POLICY = "policy"
    ABILITY = "ability"


class SearchLibrary(StrEnum):
    PREDICATES = "predicates"


class PaginationLibrary(StrEnum):
    OFFSET = "offset"
