"""Attribute normalization.

Prepares user input before it reaches the backend:

- ``date`` attributes: flexible text such as ``"8-4-91"`` is parsed to a
  ``datetime.date``.
- ``datetime`` attributes: parsed to a ``datetime.datetime`` truncated to
  the configured precision.
- ``decimal`` / ``float`` attributes: a single decimal comma becomes a point
  when the active locale uses a comma separator.

Keys ending in ``_attributes`` hold nested association input and are
normalized against the associated entity; list values are normalized
element-wise.  Unparseable values, unknown attributes and unknown
associations pass through unchanged -- the normalizer never raises on
malformed input.  The input tree is never mutated; a new tree is returned.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from dateutil import parser as date_parser
from loguru import logger

from manageable.context import get_decimal_separator
from manageable.models.enums import DatetimePrecision, SemanticType
from manageable.registry import get_configuration

NESTED_ATTRIBUTES_SUFFIX = "_attributes"

# Year-first input is ISO order regardless of the day-first setting
_ISO_DATE = re.compile(r"^\s*\d{4}-\d{1,2}-\d{1,2}")

_TRUNCATE: dict[DatetimePrecision, dict[str, int]] = {
    DatetimePrecision.DAY: {"hour": 0, "minute": 0, "second": 0, "microsecond": 0},
    DatetimePrecision.HOUR: {"minute": 0, "second": 0, "microsecond": 0},
    DatetimePrecision.MIN: {"second": 0, "microsecond": 0},
    DatetimePrecision.SEC: {"microsecond": 0},
    DatetimePrecision.USEC: {},
}


class TypeSchema(Protocol):
    """Type metadata lookup supplied by the persistence backend."""

    def association_target_type(self, entity: type, name: str) -> type | None:
        """Return the entity type a relationship points to, or ``None``."""
        ...

    def attribute_semantic_type(self, entity: type, name: str) -> SemanticType | None:
        """Return the semantic type of a column attribute, or ``None``."""
        ...


def parse_datetime(
    value: Any,
    *,
    day_first: bool = True,
    precision: DatetimePrecision = DatetimePrecision.MIN,
) -> datetime | None:
    """Parse flexible date/time text.  Returns ``None`` when *value* is not parseable."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value, dayfirst=day_first and not _ISO_DATE.match(value))
    except (ValueError, OverflowError):
        return None
    return parsed.replace(**_TRUNCATE[precision])


def normalize_decimal_separator(value: Any, separator: str) -> Any:
    """Replace a decimal comma with a point.

    Only when *separator* is a comma and the value contains no point and
    exactly one comma; anything else is returned unchanged.
    """
    if separator != "," or not isinstance(value, str):
        return value
    if value.count(".") == 0 and value.count(",") == 1:
        return value.replace(",", ".")
    return value


class AttributeNormalizer:
    """Normalizes an attribute tree against a ``TypeSchema``.

    Locale and parsing options default to the active context and the
    configuration registry at call time.
    """

    def __init__(
        self,
        schema: TypeSchema,
        *,
        decimal_separator: str | None = None,
        day_first: bool | None = None,
        precision: DatetimePrecision | str | None = None,
    ) -> None:
        self._schema = schema
        self._decimal_separator = decimal_separator
        self._day_first = day_first
        self._precision = DatetimePrecision(precision) if precision is not None else None

    def normalize(self, entity: type | None, attributes: Any) -> Any:
        config = get_configuration()
        self._active_separator = self._decimal_separator or get_decimal_separator()
        self._active_day_first = config.date_day_first if self._day_first is None else self._day_first
        self._active_precision = self._precision or config.datetime_precision
        return self._normalize_tree(entity, attributes)

    def _normalize_tree(self, entity: type | None, node: Any) -> Any:
        if isinstance(node, Mapping):
            return {str(key): self._normalize_value(entity, str(key), value) for key, value in node.items()}
        if isinstance(node, list | tuple):
            return [self._normalize_tree(entity, item) for item in node]
        return node

    def _normalize_value(self, entity: type | None, key: str, value: Any) -> Any:
        if entity is None:
            return _copy_tree(value)

        if key.endswith(NESTED_ATTRIBUTES_SUFFIX):
            association = key.removesuffix(NESTED_ATTRIBUTES_SUFFIX)
            target = self._schema.association_target_type(entity, association)
            if target is None:
                logger.debug("Normalizer: {} has no association '{}', passing through", entity.__name__, association)
                return _copy_tree(value)
            return self._normalize_tree(target, value)

        semantic_type = self._schema.attribute_semantic_type(entity, key)
        if semantic_type == SemanticType.DATE:
            parsed = parse_datetime(value, day_first=self._active_day_first, precision=DatetimePrecision.DAY)
            return parsed.date() if parsed is not None else value
        if semantic_type == SemanticType.DATETIME:
            parsed = parse_datetime(value, day_first=self._active_day_first, precision=self._active_precision)
            return parsed if parsed is not None else value
        if semantic_type in (SemanticType.DECIMAL, SemanticType.FLOAT):
            return normalize_decimal_separator(value, self._active_separator)
        return _copy_tree(value)


def _copy_tree(node: Any) -> Any:
    """Copy mappings and lists so the caller's tree is never shared."""
    if isinstance(node, Mapping):
        return {str(key): _copy_tree(value) for key, value in node.items()}
    if isinstance(node, list | tuple):
        return [_copy_tree(item) for item in node]
    return node
