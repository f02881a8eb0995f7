"""Enumerations and option schemas shared across the package."""

from manageable.models.enums import (
    ALL,
    ALL_ACTIONS,
    Action,
    AuthorizationLibrary,
    DatetimePrecision,
    LoadingStrategy,
    PaginationLibrary,
    SearchLibrary,
    SemanticType,
)
from manageable.models.options import ActionOptions, PageOptions

__all__ = [
    "ALL",
    "ALL_ACTIONS",
    "Action",
    "ActionOptions",
    "AuthorizationLibrary",
    "DatetimePrecision",
    "LoadingStrategy",
    "PageOptions",
    "PaginationLibrary",
    "SearchLibrary",
    "SemanticType",
]
