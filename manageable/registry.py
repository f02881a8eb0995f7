"""Process-wide configuration registry.

Holds the adapter selection and manager defaults that ``ManagerType`` reads
when a manager class is defined.  Every setter validates its value and
raises ``ConfigurationError`` immediately, so a bad setup fails once at
startup instead of on every call.  Values are seeded from
``ManageableSettings`` (``MANAGEABLE_*`` env vars).
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from loguru import logger

from manageable.errors import ConfigurationError
from manageable.models.enums import (
    AuthorizationLibrary,
    DatetimePrecision,
    LoadingStrategy,
    PaginationLibrary,
    SearchLibrary,
)
from manageable.settings import ManageableSettings, get_settings

AdapterChoice = str | type | None


def _validate_adapter(kind: str, choices: type[StrEnum], value: Any) -> AdapterChoice:
    if value is None or isinstance(value, type):
        return value
    if isinstance(value, str) and value in {c.value for c in choices}:
        return choices(value)
    msg = f"Invalid {kind} library: {value!r} (expected one of {sorted(c.value for c in choices)} or an adapter class)"
    raise ConfigurationError(msg)


def _validate_choice(kind: str, choices: type[StrEnum], value: Any) -> Any:
    try:
        return choices(value)
    except ValueError:
        msg = f"Invalid {kind}: {value!r} (expected one of {sorted(c.value for c in choices)})"
        raise ConfigurationError(msg) from None


class Configuration:
    """Validated adapter and default selection.

    ``authorization`` / ``search`` / ``pagination`` accept an enumerated
    library name, a custom adapter class, or ``None`` to disable the stage.
    """

    def __init__(self) -> None:
        self._authorization: AdapterChoice = None
        self._search: AdapterChoice = None
        self._pagination: AdapterChoice = None
        self._loading_strategy = LoadingStrategy.SELECTIN
        self._manager_suffix = "Manager"
        self._default_page_size = 25
        self._decimal_separator = "."
        self._datetime_precision = DatetimePrecision.MIN
        self._ability_class: type | None = None
        self._date_day_first = True

    @classmethod
    def from_settings(cls, settings: ManageableSettings) -> Configuration:
        config = cls()
        config.authorization = settings.authorization
        config.search = settings.search
        config.pagination = settings.pagination
        config.loading_strategy = settings.loading_strategy
        config.manager_suffix = settings.manager_suffix
        config.default_page_size = settings.default_page_size
        config.decimal_separator = settings.decimal_separator
        config.datetime_precision = settings.datetime_precision
        config.date_day_first = settings.date_day_first
        return config

    # -- Adapters --------------------------------------------------------------

    @property
    def authorization(self) -> AdapterChoice:
        return self._authorization

    @authorization.setter
    def authorization(self, value: Any) -> None:
        self._authorization = _validate_adapter("authorization", AuthorizationLibrary, value)

    @property
    def search(self) -> AdapterChoice:
        return self._search

    @search.setter
    def search(self, value: Any) -> None:
        self._search = _validate_adapter("search", SearchLibrary, value)

    @property
    def pagination(self) -> AdapterChoice:
        return self._pagination

    @pagination.setter
    def pagination(self, value: Any) -> None:
        self._pagination = _validate_adapter("pagination", PaginationLibrary, value)

    @property
    def ability_class(self) -> type | None:
        """Ability class instantiated per user by the ``ability`` adapter."""
        return self._ability_class

    @ability_class.setter
    def ability_class(self, value: Any) -> None:
        if value is not None and not isinstance(value, type):
            msg = f"Invalid ability class: {value!r}"
            raise ConfigurationError(msg)
        self._ability_class = value

    # -- Managers --------------------------------------------------------------

    @property
    def loading_strategy(self) -> LoadingStrategy:
        return self._loading_strategy

    @loading_strategy.setter
    def loading_strategy(self, value: Any) -> None:
        self._loading_strategy = _validate_choice("loading strategy", LoadingStrategy, value)

    @property
    def manager_suffix(self) -> str:
        return self._manager_suffix

    @manager_suffix.setter
    def manager_suffix(self, value: Any) -> None:
        if not isinstance(value, str) or not value.strip():
            msg = f"Invalid manager suffix: {value!r}"
            raise ConfigurationError(msg)
        self._manager_suffix = value

    @property
    def default_page_size(self) -> int:
        return self._default_page_size

    @default_page_size.setter
    def default_page_size(self, value: Any) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            msg = f"Invalid default page size: {value!r}"
            raise ConfigurationError(msg)
        self._default_page_size = value

    # -- Attribute normalization -----------------------------------------------

    @property
    def decimal_separator(self) -> str:
        return self._decimal_separator

    @decimal_separator.setter
    def decimal_separator(self, value: Any) -> None:
        if value not in {".", ","}:
            msg = f"Invalid decimal separator: {value!r}"
            raise ConfigurationError(msg)
        self._decimal_separator = value

    @property
    def date_day_first(self) -> bool:
        """Read ambiguous dates such as ``8-4-91`` day first."""
        return self._date_day_first

    @date_day_first.setter
    def date_day_first(self, value: Any) -> None:
        if not isinstance(value, bool):
            msg = f"Invalid date_day_first: {value!r} (expected a bool)"
            raise ConfigurationError(msg)
        self._date_day_first = value

    @property
    def datetime_precision(self) -> DatetimePrecision:
        return self._datetime_precision

    @datetime_precision.setter
    def datetime_precision(self, value: Any) -> None:
        self._datetime_precision = _validate_choice("datetime precision", DatetimePrecision, value)

    def as_dict(self) -> dict[str, Any]:
        """Return a printable snapshot of the current selection."""

        def _name(choice: AdapterChoice) -> str | None:
            if isinstance(choice, type):
                return f"{choice.__module__}.{choice.__qualname__}"
            return None if choice is None else str(choice)

        return {
            "authorization": _name(self.authorization),
            "search": _name(self.search),
            "pagination": _name(self.pagination),
            "ability_class": _name(self.ability_class),
            "loading_strategy": str(self.loading_strategy),
            "manager_suffix": self.manager_suffix,
            "default_page_size": self.default_page_size,
            "decimal_separator": self.decimal_separator,
            "date_day_first": self.date_day_first,
            "datetime_precision": str(self.datetime_precision),
        }


_configuration: Configuration | None = None


def get_configuration() -> Configuration:
    """Return the process-wide configuration, seeding it from settings on first use."""
    global _configuration
    if _configuration is None:
        _configuration = Configuration.from_settings(get_settings())
    return _configuration


def configure(**changes: Any) -> Configuration:
    """Apply validated changes to the process-wide configuration.

    Example::

        configure(authorization="policy", search="predicates", pagination="offset")

    Raises ``ConfigurationError`` for unknown keys or invalid values; earlier
    keys in the same call stay applied.
    """
    config = get_configuration()
    for key, value in changes.items():
        if key.startswith("_") or not isinstance(getattr(Configuration, key, None), property):
            msg = f"Unknown configuration key: {key!r}"
            raise ConfigurationError(msg)
        setattr(config, key, value)
        logger.debug("Configuration: {} = {!r}", key, value)
    return config


def reset_configuration() -> Configuration:
    """Discard runtime changes and re-seed from settings."""
    global _configuration
    _configuration = None
    return get_configuration()
