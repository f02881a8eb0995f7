"""Built-in authorization adapters.

``policy``
    One ``Policy`` class per entity, registered with ``@policy_for``.  Each
    action maps to a predicate method (``new`` and ``edit`` defer to
    ``create`` and ``update``), and the nested ``Scope`` restricts the list
    query::

        @policy_for(Album)
        class AlbumPolicy(Policy):
            def read(self):
                return self.user is not None

            class Scope(Policy.Scope):
                def resolve(self):
                    return self.scope.where(Album.published.is_(True))

``ability``
    One ``Ability`` class for the whole application, configured through
    ``configure(ability_class=...)``.  Rules are declared per user with
    ``can`` / ``cannot``; column conditions double as row filters for the
    list query::

        class AppAbility(Ability):
            def define(self, user):
                self.can("read", Album, published=True)
                if user is not None and user.admin:
                    self.can("manage", "all")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, Select, and_, false, not_, or_, select, true

from manageable.errors import AuthorizationDenied, ConfigurationError, ManagerError
from manageable.models.enums import ALL, Action
from manageable.registry import get_configuration


def _entity_of(record: Any) -> type:
    return record if isinstance(record, type) else type(record)


# -- Policies ------------------------------------------------------------------


class PolicyNotFound(ManagerError, LookupError):
    """Raised when no policy is registered for an entity or its bases."""

    def __init__(self, entity: type) -> None:
        super().__init__(f"No policy registered for {entity.__name__}")


_policies: dict[type, type[Policy]] = {}


def policy_for(entity: type) -> Callable[[type[Policy]], type[Policy]]:
    """Register the decorated ``Policy`` subclass for *entity*."""

    def decorator(policy_cls: type[Policy]) -> type[Policy]:
        _policies[entity] = policy_cls
        return policy_cls

    return decorator


def find_policy(entity: type) -> type[Policy]:
    for candidate in entity.__mro__:
        policy_cls = _policies.get(candidate)
        if policy_cls is not None:
            return policy_cls
    raise PolicyNotFound(entity)


class Policy:
    """Default-deny policy.  Override the predicates an entity allows."""

    def __init__(self, user: Any, record: Any) -> None:
        self.user = user
        self.record = record

    def list(self) -> bool:
        return False

    def read(self) -> bool:
        return False

    def create(self) -> bool:
        return False

    def new(self) -> bool:
        return self.create()

    def update(self) -> bool:
        return False

    def edit(self) -> bool:
        return self.update()

    def delete(self) -> bool:
        return False

    class Scope:
        """Restricts the list query.  The default scope returns every row."""

        def __init__(self, user: Any, scope: Select) -> None:
            self.user = user
            self.scope = scope

        def resolve(self) -> Select:
            return self.scope


class PolicyAuthorization:
    def authorize(self, user: Any, action: str, record: Any) -> None:
        policy = find_policy(_entity_of(record))(user, record)
        if not getattr(policy, str(action))():
            logger.debug("{} denied {} on {!r}", type(policy).__name__, action, record)
            raise AuthorizationDenied(str(action), record, user)

    def scoped_query(self, user: Any, entity: type) -> Select:
        policy_cls = find_policy(entity)
        return policy_cls.Scope(user, select(entity)).resolve()


# -- Abilities -----------------------------------------------------------------

MANAGE = "manage"

_ACTION_ALIASES: dict[str, frozenset[str]] = {
    MANAGE: frozenset(a.value for a in Action),
    "read": frozenset({Action.LIST, Action.READ}),
    "create": frozenset({Action.NEW, Action.CREATE}),
    "update": frozenset({Action.EDIT, Action.UPDATE}),
}


def _expand_actions(actions: str | Iterable[str]) -> frozenset[str]:
    if isinstance(actions, str):
        actions = [actions]
    expanded: set[str] = set()
    for action in actions:
        if action in _ACTION_ALIASES:
            expanded |= _ACTION_ALIASES[action]
        elif action in {a.value for a in Action}:
            expanded.add(action)
        else:
            msg = f"Unknown ability action: {action!r}"
            raise ConfigurationError(msg)
    return frozenset(expanded)


class Rule:
    """One ``can`` / ``cannot`` declaration."""

    def __init__(
        self,
        allowed: bool,
        actions: frozenset[str],
        subject: type | str,
        conditions: dict[str, Any],
        check: Callable[[Any], bool] | None,
    ) -> None:
        self.allowed = allowed
        self.actions = actions
        self.subject = subject
        self.conditions = conditions
        self.check = check

    def is_relevant(self, action: str, entity: type) -> bool:
        if action not in self.actions:
            return False
        return self.subject == ALL or (isinstance(self.subject, type) and issubclass(entity, self.subject))

    def matches(self, record: Any) -> bool:
        # Type-level checks pass when any record could match; a conditional
        # cannot only narrows rows, it never refuses the whole type
        if isinstance(record, type):
            return self.allowed or (not self.conditions and self.check is None)
        if self.check is not None and not self.check(record):
            return False
        for name, expected in self.conditions.items():
            value = getattr(record, name)
            if isinstance(expected, list | tuple | set | frozenset):
                if value not in expected:
                    return False
            elif value != expected:
                return False
        return True

    def to_clause(self, entity: type) -> ColumnElement[bool]:
        if self.check is not None:
            msg = f"Rule with a check function cannot restrict a query on {entity.__name__}"
            raise ConfigurationError(msg)
        if not self.conditions:
            return true()
        clauses = []
        for name, expected in self.conditions.items():
            column = getattr(entity, name)
            if isinstance(expected, list | tuple | set | frozenset):
                clauses.append(column.in_(list(expected)))
            else:
                clauses.append(column == expected)
        return and_(*clauses)


class Ability:
    """Rule set for one user.  Later rules take precedence over earlier ones."""

    def __init__(self, user: Any) -> None:
        self.user = user
        self._rules: list[Rule] = []
        self.define(user)

    def define(self, user: Any) -> None:
        """Declare rules with ``self.can`` / ``self.cannot``."""

    def can(
        self,
        actions: str | Iterable[str],
        subject: type | str,
        check: Callable[[Any], bool] | None = None,
        **conditions: Any,
    ) -> None:
        self._rules.append(Rule(True, _expand_actions(actions), subject, conditions, check))

    def cannot(
        self,
        actions: str | Iterable[str],
        subject: type | str,
        check: Callable[[Any], bool] | None = None,
        **conditions: Any,
    ) -> None:
        self._rules.append(Rule(False, _expand_actions(actions), subject, conditions, check))

    def allows(self, action: str, record: Any) -> bool:
        entity = _entity_of(record)
        for rule in reversed(self._rules):
            if rule.is_relevant(str(action), entity) and rule.matches(record):
                return rule.allowed
        return False

    def accessible_query(self, entity: type, action: str = Action.LIST) -> Select:
        clause: ColumnElement[bool] = false()
        for rule in self._rules:
            if not rule.is_relevant(str(action), entity):
                continue
            if rule.allowed:
                clause = or_(clause, rule.to_clause(entity))
            else:
                clause = and_(clause, not_(rule.to_clause(entity)))
        return select(entity).where(clause)


class AbilityAuthorization:
    def __init__(self, ability_class: type[Ability] | None = None) -> None:
        self._ability_class = ability_class

    def ability_for(self, user: Any) -> Ability:
        ability_class = self._ability_class or get_configuration().ability_class
        if ability_class is None:
            msg = "The ability adapter needs configure(ability_class=...)"
            raise ConfigurationError(msg)
        return ability_class(user)

    def authorize(self, user: Any, action: str, record: Any) -> None:
        if not self.ability_for(user).allows(str(action), record):
            raise AuthorizationDenied(str(action), record, user)

    def scoped_query(self, user: Any, entity: type) -> Select:
        return self.ability_for(user).accessible_query(entity)
