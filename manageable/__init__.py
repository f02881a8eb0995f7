"""Uniform list/read/new/create/edit/update/delete orchestration for SQLAlchemy entities."""

from manageable.adapters import Ability, Policy, policy_for
from manageable.context import acting_as, decimal_separator, get_current_user, set_current_user
from manageable.db import ManagedEntity, RecordErrors, SqlAlchemyBackend, named_scope
from manageable.defaults import DefaultsRegistry, deferred
from manageable.errors import (
    AuthorizationDenied,
    ConfigurationError,
    ManagerError,
    PersistenceFailed,
    RecordNotFound,
    UnknownAssociationError,
    UnknownAttributeError,
    UnknownScopeError,
    ValidationFailed,
)
from manageable.managers import Manager, ManagerType
from manageable.models import ALL_ACTIONS, Action, ActionOptions, LoadingStrategy, PageOptions
from manageable.registry import configure, get_configuration, reset_configuration

__all__ = [
    "ALL_ACTIONS",
    "Ability",
    "Action",
    "ActionOptions",
    "AuthorizationDenied",
    "ConfigurationError",
    "DefaultsRegistry",
    "LoadingStrategy",
    "ManagedEntity",
    "Manager",
    "ManagerError",
    "ManagerType",
    "PageOptions",
    "PersistenceFailed",
    "Policy",
    "RecordErrors",
    "RecordNotFound",
    "SqlAlchemyBackend",
    "UnknownAssociationError",
    "UnknownAttributeError",
    "UnknownScopeError",
    "ValidationFailed",
    "acting_as",
    "configure",
    "decimal_separator",
    "deferred",
    "get_configuration",
    "get_current_user",
    "named_scope",
    "policy_for",
    "reset_configuration",
    "set_current_user",
]
