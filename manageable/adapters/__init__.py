"""Collaborator adapters and their selection.

``build_adapter`` turns a configuration choice (a library name, an adapter
class, or ``None``) into the adapter instance a manager type holds.
"""

from __future__ import annotations

from typing import Any

from manageable.adapters.authorization import (
    Ability,
    AbilityAuthorization,
    Policy,
    PolicyAuthorization,
    PolicyNotFound,
    find_policy,
    policy_for,
)
from manageable.adapters.base import (
    AuthorizationAdapter,
    NullAuthorization,
    NullPagination,
    NullSearch,
    PaginationAdapter,
    SearchAdapter,
)
from manageable.adapters.pagination import OffsetPagination
from manageable.adapters.search import PredicateSearch
from manageable.errors import ConfigurationError
from manageable.models.enums import AuthorizationLibrary, PaginationLibrary, SearchLibrary

_BUILTINS: dict[str, dict[str, type]] = {
    "authorization": {
        AuthorizationLibrary.POLICY: PolicyAuthorization,
        AuthorizationLibrary.ABILITY: AbilityAuthorization,
    },
    "search": {SearchLibrary.PREDICATES: PredicateSearch},
    "pagination": {PaginationLibrary.OFFSET: OffsetPagination},
}

_NULLS: dict[str, type] = {
    "authorization": NullAuthorization,
    "search": NullSearch,
    "pagination": NullPagination,
}

_PROTOCOLS: dict[str, type] = {
    "authorization": AuthorizationAdapter,
    "search": SearchAdapter,
    "pagination": PaginationAdapter,
}


def build_adapter(kind: str, choice: Any) -> Any:
    """Instantiate the adapter for *kind* ("authorization", "search" or "pagination")."""
    if choice is None:
        adapter_cls = _NULLS[kind]
    elif isinstance(choice, type):
        adapter_cls = choice
    elif isinstance(choice, str) and choice in _BUILTINS[kind]:
        adapter_cls = _BUILTINS[kind][choice]
    else:
        msg = f"Invalid {kind} adapter: {choice!r} (expected one of {sorted(_BUILTINS[kind])} or an adapter class)"
        raise ConfigurationError(msg)

    adapter = adapter_cls()
    if not isinstance(adapter, _PROTOCOLS[kind]):
        msg = f"{adapter_cls.__qualname__} does not implement the {kind} adapter interface"
        raise ConfigurationError(msg)
    return adapter


__all__ = [
    "Ability",
    "AbilityAuthorization",
    "AuthorizationAdapter",
    "NullAuthorization",
    "NullPagination",
    "NullSearch",
    "OffsetPagination",
    "PaginationAdapter",
    "Policy",
    "PolicyAuthorization",
    "PolicyNotFound",
    "PredicateSearch",
    "SearchAdapter",
    "build_adapter",
    "find_policy",
    "policy_for",
]
