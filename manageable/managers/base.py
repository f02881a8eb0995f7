"""Manager base class and the ``ManagerType`` metaclass that builds manager types.

A manager type is declared once and is immutable afterwards::

    class AlbumManager(Manager, actions=ALL_ACTIONS, authorization="policy", pagination="offset"):
        defaults = DefaultsRegistry().order("name").includes("songs", actions=["read"])

Class keywords:

- ``actions``: ``ALL_ACTIONS`` or an iterable of action names; the matching
  action mixins are placed in front of the bases.
- ``entity``: the SQLAlchemy model.  When omitted it is inferred by stripping
  the configured suffix (``"Manager"``) from the class name and looking the
  rest up in the defining module, then in ``entity_base.registry``.
- ``authorization`` / ``search`` / ``pagination``: a library name, an
  adapter class, or ``None``.  When omitted the parent's adapter is kept, or
  the configuration registry decides.
- ``unique_search``: ``True``/``False`` or ``{"if": cond}`` / ``{"unless":
  cond}`` where ``cond`` is a method name or ``callable(manager)``; when
  it holds, the list query is made ``DISTINCT``.

A manager instance runs one action at a time.  Each public entry point
resets the per-call state (``action``, ``attributes``, ``options``,
``target``) before its stages run.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any, ClassVar

from loguru import logger
from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from manageable.adapters import build_adapter
from manageable.context import get_current_user
from manageable.db.backend import SqlAlchemyBackend
from manageable.db.query import apply_includes, apply_order, apply_scopes, apply_select, parse_scopes
from manageable.defaults import MISSING, DefaultResolver, DefaultsRegistry
from manageable.errors import ConfigurationError
from manageable.managers.actions import ACTION_MIXINS
from manageable.models.enums import ALL, ALL_ACTIONS, Action, LoadingStrategy
from manageable.models.options import ActionOptions
from manageable.normalizer import AttributeNormalizer
from manageable.registry import get_configuration

ADAPTER_KINDS = ("authorization", "search", "pagination")

_UNIQUE_SEARCH_KEYS = ("if", "unless")


def _parse_actions(actions: Any) -> list[Action]:
    if actions == ALL_ACTIONS:
        return list(Action)
    if isinstance(actions, str):
        actions = [actions]
    parsed = []
    for action in actions:
        try:
            parsed.append(Action(action))
        except ValueError:
            msg = f"Unknown action: {action!r} (expected {ALL_ACTIONS!r} or some of {[a.value for a in Action]})"
            raise ConfigurationError(msg) from None
    return parsed


def _parse_unique_search(value: Any) -> bool | tuple[str, str | Callable[[Manager], Any]]:
    if isinstance(value, bool):
        return value
    if isinstance(value, Mapping) and len(value) == 1:
        key, condition = next(iter(value.items()))
        if key in _UNIQUE_SEARCH_KEYS and (isinstance(condition, str) or callable(condition)):
            return key, condition
    msg = f"Invalid unique_search: {value!r} (expected a bool, {{'if': cond}} or {{'unless': cond}})"
    raise ConfigurationError(msg)


def _infer_entity(name: str, module_name: str, entity_base: Any) -> type | None:
    suffix = get_configuration().manager_suffix
    if not name.endswith(suffix) or name == suffix:
        return None
    entity_name = name.removesuffix(suffix)

    module = sys.modules.get(module_name)
    candidate = getattr(module, entity_name, None) if module is not None else None
    if isinstance(candidate, type):
        return candidate

    registry = getattr(entity_base, "registry", None)
    if registry is not None:
        for mapper in registry.mappers:
            if mapper.class_.__name__ == entity_name:
                return mapper.class_
    return None


class ManagerType(type):
    """Metaclass composing action mixins, adapters and defaults into a manager type."""

    def __new__(
        mcls,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        *,
        actions: Any = None,
        entity: type | None = None,
        authorization: Any = MISSING,
        search: Any = MISSING,
        pagination: Any = MISSING,
        unique_search: Any = MISSING,
    ) -> ManagerType:
        if actions is not None:
            mixins = [ACTION_MIXINS[action] for action in _parse_actions(actions)]
            mixins = [mixin for mixin in mixins if not any(issubclass(base, mixin) for base in bases)]
            bases = (*mixins, *bases)

        cls = super().__new__(mcls, name, bases, namespace)
        parent = next((base for base in cls.__mro__[1:] if isinstance(base, ManagerType)), None)
        if parent is None:
            return cls

        cls.entity = (
            entity
            or namespace.get("entity")
            or _infer_entity(name, namespace.get("__module__", ""), cls.entity_base)
            or parent.entity
        )
        cls.actions = frozenset(action for action, mixin in ACTION_MIXINS.items() if issubclass(cls, mixin))

        defaults = namespace.get("defaults", parent.defaults)
        if not isinstance(defaults, DefaultsRegistry):
            msg = f"{name}.defaults must be a DefaultsRegistry, got {type(defaults).__name__}"
            raise ConfigurationError(msg)
        cls.defaults = defaults.copy()

        config = get_configuration()
        for kind, choice in (("authorization", authorization), ("search", search), ("pagination", pagination)):
            inherited = getattr(parent, f"{kind}_adapter")
            if choice is MISSING:
                adapter = inherited if inherited is not None else build_adapter(kind, getattr(config, kind))
            else:
                adapter = build_adapter(kind, choice)
            setattr(cls, f"{kind}_adapter", adapter)

        if unique_search is not MISSING:
            cls.unique_search = _parse_unique_search(unique_search)
        elif "unique_search" in namespace:
            cls.unique_search = _parse_unique_search(namespace["unique_search"])

        logger.debug(
            "Built manager type {} (entity={}, actions={})",
            name,
            getattr(cls.entity, "__name__", None),
            sorted(cls.actions),
        )
        return cls

    def __init__(cls, name: str, bases: tuple[type, ...], namespace: dict[str, Any], **kwargs: Any) -> None:
        super().__init__(name, bases, namespace)


class Manager(metaclass=ManagerType):
    """Base of every manager type.  Holds the shared pipeline stages."""

    entity: ClassVar[type | None] = None
    entity_base: ClassVar[Any] = None
    actions: ClassVar[frozenset[Action]] = frozenset()
    defaults: ClassVar[DefaultsRegistry] = DefaultsRegistry()
    authorization_adapter: ClassVar[Any] = None
    search_adapter: ClassVar[Any] = None
    pagination_adapter: ClassVar[Any] = None
    unique_search: ClassVar[bool | tuple[str, Any]] = False

    def __init__(self, session: Session | None = None, *, backend: Any = None) -> None:
        if type(self).entity is None:
            msg = f"{type(self).__name__} has no entity; pass entity= or follow the <Entity>Manager naming"
            raise ConfigurationError(msg)
        if backend is None:
            if session is None:
                msg = f"{type(self).__name__} needs a session or a backend"
                raise ConfigurationError(msg)
            backend = SqlAlchemyBackend(session)
        self.backend = backend
        self._normalizer = AttributeNormalizer(backend)
        self._user_override: Any = MISSING
        self._action: Action | None = None
        self._resolver: DefaultResolver | None = None
        self._owns_transaction = False
        self.attributes: dict[str, Any] = {}
        self.options = ActionOptions()
        self.target: Any = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} action={self._action} entity={self.entity.__name__}>"

    # -- State -----------------------------------------------------------------

    @property
    def action(self) -> Action | None:
        """The action in flight (or last run).  Set only by the public entry points."""
        return self._action

    @property
    def record(self) -> Any:
        return self.target

    @property
    def collection(self) -> Any:
        return self.target

    @property
    def current_user(self) -> Any:
        if self._user_override is not MISSING:
            return self._user_override
        return get_current_user()

    @contextmanager
    def with_current_user(self, user: Any) -> Iterator[Manager]:
        """Act as *user* on this instance inside the block, restoring the previous user on exit."""
        previous = self._user_override
        self._user_override = user
        try:
            yield self
        finally:
            self._user_override = previous

    def resolve_default(self, key: str, action: Action | str | None = None) -> Any:
        """Resolve the default for *key* (ignoring call-site options)."""
        if action is None and self._resolver is not None:
            return self._resolver.resolve(key)
        action = Action(action) if action is not None else self._action
        if action is None:
            msg = "resolve_default needs an action when no action has run"
            raise ValueError(msg)
        return DefaultResolver(type(self).defaults, self, action).resolve(key)

    def is_unique_search(self) -> bool:
        condition = type(self).unique_search
        if isinstance(condition, bool):
            return condition
        key, check = condition
        result = bool(getattr(self, check)() if isinstance(check, str) else check(self))
        return result if key == "if" else not result

    # -- Pipeline --------------------------------------------------------------

    def _begin(
        self,
        action: Action,
        *,
        attributes: Any = None,
        options: ActionOptions | Mapping[str, Any] | None = None,
    ) -> None:
        self._action = action
        self.target = None
        # Decided before any stage touches the session
        self._owns_transaction = self.backend.is_idle()
        self.options = _coerce_options(options)
        self._resolver = DefaultResolver(type(self).defaults, self, action)
        self.attributes = self._normalizer.normalize(self.entity, _coerce_attributes(attributes))
        logger.debug("{}.{} started", type(self).__name__, action)

    def _resolve(self, key: str, option: Any = None) -> Any:
        return self._resolver.resolve(key, option)

    def _authorize(self, record: Any) -> None:
        self.authorization_adapter.authorize(self.current_user, self._action, record)

    def _authorized_scope(self) -> Select:
        return self.authorization_adapter.scoped_query(self.current_user, self.entity)

    def _base_scope(self) -> Select:
        return select(self.entity)

    def _search(self) -> bool:
        self.target, has_sort = self.search_adapter.apply_search(self.target, self.options.search)
        return has_sort

    def _order(self) -> None:
        spec = self._resolver.evaluate(self._resolve("order", self.options.order))
        self.target = apply_order(self.target, self.entity, spec)

    def _scopes(self) -> None:
        scopes = parse_scopes(self._resolve("scopes", self.options.scopes), self._resolver.evaluate)
        if scopes:
            logger.debug("{}: applying scopes {}", type(self).__name__, list(scopes))
        self.target = apply_scopes(self.target, self.entity, scopes)

    def _paginate(self) -> None:
        page = self.options.page
        number = page.number if page is not None else None
        size = self._resolve("page_size", page.size if page is not None else None)
        self.target = self.pagination_adapter.paginate(self.target, number, size)

    def _includes(self) -> None:
        # Associations: call-site, else defaults.  Loading: call-site, action
        # default, all-actions default, then configuration.
        associations, loading = _split_includes(self.options.includes)
        default_associations, default_loading = _split_includes(self._resolve("includes"))
        if associations is None:
            associations = default_associations
        if loading is None:
            loading = default_loading or self._all_actions_loading()
        associations = self._resolver.evaluate(associations)
        if not associations:
            return
        strategy = LoadingStrategy(loading or get_configuration().loading_strategy)
        self.target = apply_includes(self.target, self.entity, associations, strategy)

    def _all_actions_loading(self) -> Any:
        scoped = type(self).defaults.get("includes", {})
        if self._action not in scoped:
            return None
        _, loading = _split_includes(self._resolver.evaluate(scoped.get(ALL, MISSING)))
        return loading

    def _select(self) -> None:
        columns = self._resolver.evaluate(self._resolve("select", self.options.select))
        self.target = apply_select(self.target, self.entity, columns)

    def _distinct(self) -> None:
        if self.is_unique_search():
            self.target = self.target.distinct()

    def _build_unsaved(self) -> Any:
        defaults = self._resolver.evaluate(self._resolve("attributes"))
        attributes = {**(defaults or {}), **self.attributes}
        return self.backend.new_unsaved(self.entity, attributes)

    def _find_for_display(self, id: Any, extension: Callable[[Manager], Any] | None) -> Any:
        self.target = self._base_scope()
        self._includes()
        self._select()
        self._run_extension(extension)
        self.target = self.backend.find_by_id(self.target, id)
        self._authorize(self.target)
        return self.target

    def _run_extension(self, extension: Callable[[Manager], Any] | None) -> None:
        if extension is not None:
            extension(self)


def _split_includes(spec: Any) -> tuple[Any, Any]:
    """Split an includes spec into ``(associations, loading)``."""
    if isinstance(spec, Mapping) and "associations" in spec:
        return spec["associations"], spec.get("loading")
    return spec, None


def _coerce_options(options: ActionOptions | Mapping[str, Any] | None) -> ActionOptions:
    if options is None:
        return ActionOptions()
    if isinstance(options, ActionOptions):
        return options.model_copy()
    return ActionOptions.model_validate(dict(options))


def _coerce_attributes(attributes: Any) -> Mapping[str, Any]:
    if attributes is None:
        return {}
    if isinstance(attributes, BaseModel):
        return attributes.model_dump(exclude_unset=True)
    if isinstance(attributes, Mapping):
        return attributes
    msg = f"Attributes must be a mapping or a pydantic model, got {type(attributes).__name__}"
    raise TypeError(msg)


def manager_actions(manager_cls: type[Manager]) -> Iterable[str]:
    """Public entry points a manager type exposes, in pipeline order."""
    return [action.value for action in Action if action in manager_cls.actions]
