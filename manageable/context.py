"""Call-context state shared by every manager in the current thread or task.

``current_user`` is the process-level acting user (set once per request by
the presentation layer); a manager instance can override it temporarily
with ``Manager.with_current_user``.  ``decimal_separator`` is the number
format of the active locale, consulted by the attribute normalizer.

Both are ``ContextVar``s so concurrent requests in threads or tasks never
see each other's values.
"""

from __future__ import annotations

import contextvars
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from manageable.registry import get_configuration

_current_user: contextvars.ContextVar[Any] = contextvars.ContextVar("manageable_current_user", default=None)
_decimal_separator: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "manageable_decimal_separator", default=None
)


def get_current_user() -> Any:
    return _current_user.get()


def set_current_user(user: Any) -> contextvars.Token:
    """Set the acting user for the current context.  Returns a reset token."""
    return _current_user.set(user)


@contextmanager
def acting_as(user: Any) -> Iterator[Any]:
    """Set the acting user for the duration of the block.

    The previous value is restored on exit, including when the block raises.
    """
    token = _current_user.set(user)
    try:
        yield user
    finally:
        _current_user.reset(token)


def get_decimal_separator() -> str:
    """Return the active decimal separator.

    Falls back to the configuration registry when no locale block is active.
    """
    separator = _decimal_separator.get()
    if separator is not None:
        return separator

    return get_configuration().decimal_separator


@contextmanager
def decimal_separator(separator: str) -> Iterator[str]:
    """Use *separator* as the locale decimal separator inside the block.

    Example::

        with decimal_separator(","):
            manager.create({"price": "12,50"})  # normalized to "12.50"
    """
    if separator not in {".", ","}:
        msg = f"Unsupported decimal separator: {separator!r}"
        raise ValueError(msg)
    token = _decimal_separator.set(separator)
    try:
        yield separator
    finally:
        _decimal_separator.reset(token)
