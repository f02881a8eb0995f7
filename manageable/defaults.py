"""Declared defaults and their resolution against call-site options.

A ``DefaultsRegistry`` maps an option key to ``{action-or-"all": value}``.
It is immutable: every builder method returns a new registry, so a manager
subclass extending its parent's defaults can never leak into the parent or
a sibling::

    class AlbumManager(Manager, actions=ALL_ACTIONS):
        defaults = (
            DefaultsRegistry()
            .order("name", "created_at")
            .page_size(5)
            .includes("songs", actions=["read", "edit"])
            .attribute_values(lambda manager: {"genre": "electronic"})
        )

Functions passed as values are deferred: they are called with the manager
instance when an action needs the value.  ``deferred("method_name")`` defers
to a zero-argument method of the manager instead.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from manageable.errors import ConfigurationError
from manageable.models.enums import ALL, Action, LoadingStrategy

if TYPE_CHECKING:
    from manageable.managers.base import Manager

MISSING: Any = object()

KNOWN_KEYS = frozenset({"order", "scopes", "page_size", "includes", "select", "attributes"})


class Deferred:
    """A default evaluated in the context of the calling manager instance."""

    __slots__ = ("target",)

    def __init__(self, target: str | Callable[[Manager], Any]) -> None:
        if not isinstance(target, str) and not callable(target):
            msg = f"Deferred target must be a method name or callable, got {target!r}"
            raise ConfigurationError(msg)
        self.target = target

    def evaluate(self, manager: Manager) -> Any:
        if isinstance(self.target, str):
            return getattr(manager, self.target)()
        return self.target(manager)

    def __repr__(self) -> str:
        target = self.target if isinstance(self.target, str) else getattr(self.target, "__qualname__", self.target)
        return f"Deferred({target!r})"


def deferred(target: str | Callable[[Manager], Any]) -> Deferred:
    """Wrap a manager method name or a ``callable(manager)`` as a deferred default."""
    return Deferred(target)


def _defer(value: Any) -> Any:
    if inspect.isfunction(value) or inspect.ismethod(value):
        return Deferred(value)
    return value


def _single_or_all(values: tuple[Any, ...]) -> Any:
    """A lone function/Deferred argument is the value; otherwise the tuple is."""
    if len(values) == 1:
        value = _defer(values[0])
        if isinstance(value, Deferred):
            return value
    return list(values)


def _action_keys(actions: str | Action | Iterable[str | Action] | None) -> list[str]:
    if actions is None:
        return [ALL]
    if isinstance(actions, str):
        actions = [actions]
    keys = []
    for action in actions:
        if action != ALL and action not in {a.value for a in Action}:
            msg = f"Unknown action for defaults: {action!r}"
            raise ConfigurationError(msg)
        keys.append(str(action))
    return keys or [ALL]


class DefaultsRegistry(Mapping[str, Mapping[str, Any]]):
    """Immutable per-manager-type store of option defaults."""

    def __init__(self, entries: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._entries = MappingProxyType(
            {key: MappingProxyType(dict(scoped)) for key, scoped in (entries or {}).items()}
        )

    # -- Mapping ---------------------------------------------------------------

    def __getitem__(self, key: str) -> Mapping[str, Any]:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"DefaultsRegistry({ {k: dict(v) for k, v in self._entries.items()} })"

    # -- Core ------------------------------------------------------------------

    def copy(self) -> DefaultsRegistry:
        return DefaultsRegistry(self._entries)

    def with_default(
        self,
        key: str,
        value: Any,
        *,
        actions: str | Action | Iterable[str | Action] | None = None,
    ) -> DefaultsRegistry:
        """Return a new registry with *value* registered for *key* and *actions*."""
        if key not in KNOWN_KEYS:
            msg = f"Unknown defaults key: {key!r} (expected one of {sorted(KNOWN_KEYS)})"
            raise ConfigurationError(msg)
        entries = {k: dict(v) for k, v in self._entries.items()}
        scoped = entries.setdefault(key, {})
        for action in _action_keys(actions):
            scoped[action] = _defer(value)
        return DefaultsRegistry(entries)

    def lookup(self, key: str, action: str) -> Any:
        """Return the raw default for *action*, the all-actions default, or ``MISSING``."""
        scoped = self._entries.get(key)
        if not scoped:
            return MISSING
        if action in scoped:
            return scoped[action]
        return scoped.get(ALL, MISSING)

    # -- Declarative helpers ---------------------------------------------------

    def order(self, *columns: Any, actions: Any = None) -> DefaultsRegistry:
        """Default ORDER BY: column names, ``"name DESC"``, expressions, or a deferred."""
        return self.with_default("order", _single_or_all(columns), actions=actions)

    def scopes(self, *scopes: Any, actions: Any = None) -> DefaultsRegistry:
        """Default named scopes: names, ``{name: args}`` mappings, or a deferred."""
        return self.with_default("scopes", _single_or_all(scopes), actions=actions)

    def page_size(self, size: int, *, actions: Any = None) -> DefaultsRegistry:
        if isinstance(size, bool) or not isinstance(size, int) or size < 1:
            msg = f"Invalid default page size: {size!r}"
            raise ConfigurationError(msg)
        return self.with_default("page_size", size, actions=actions)

    def includes(
        self,
        *associations: Any,
        loading: str | LoadingStrategy | None = None,
        actions: Any = None,
    ) -> DefaultsRegistry:
        """Default associations to eager load, with an optional loading strategy."""
        if loading is not None:
            try:
                loading = LoadingStrategy(loading)
            except ValueError:
                msg = f"Invalid loading strategy: {loading!r}"
                raise ConfigurationError(msg) from None
        value = {"associations": _single_or_all(associations), "loading": loading}
        return self.with_default("includes", value, actions=actions)

    def select(self, *columns: Any, actions: Any = None) -> DefaultsRegistry:
        """Default columns to load; other columns are deferred by the ORM."""
        return self.with_default("select", _single_or_all(columns), actions=actions)

    def attribute_values(
        self,
        values: Mapping[str, Any] | Callable[[Manager], Any] | Deferred | None = None,
        /,
        *,
        actions: Any = None,
        **attrs: Any,
    ) -> DefaultsRegistry:
        """Default attribute values merged under the caller's attributes in new/create."""
        if values is None:
            values = attrs
        elif attrs:
            msg = "Pass attribute values either positionally or as keywords, not both"
            raise ConfigurationError(msg)
        if isinstance(values, Mapping):
            values = dict(values)
        return self.with_default("attributes", values, actions=actions)


class DefaultResolver:
    """Resolves option values for one action invocation.

    Precedence: call-site option, then the default registered for the
    current action, then the default registered for all actions, else
    ``None``.  Deferred defaults are evaluated at most once per resolver,
    and a fresh resolver is created for every invocation.
    """

    def __init__(self, registry: DefaultsRegistry, manager: Manager, action: Action) -> None:
        self._registry = registry
        self._manager = manager
        self._action = action
        self._cache: dict[str, Any] = {}

    def resolve(self, key: str, option: Any = None) -> Any:
        if option is not None:
            return option
        if key not in self._cache:
            self._cache[key] = self.evaluate(self._registry.lookup(key, self._action))
        return self._cache[key]

    def evaluate(self, value: Any) -> Any:
        if value is MISSING:
            return None
        if isinstance(value, Deferred):
            return value.evaluate(self._manager)
        return value
