"""Call-site option schemas.

``ActionOptions`` validates the enumerated option keys while keeping any
extra keys, so deferred defaults can read caller-specific flags through
``manager.options``.  Values that hold SQL expressions are typed ``Any``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PageOptions(BaseModel):
    """Page number and size for the list action."""

    number: int | None = None
    size: int | None = Field(default=None, gt=0)


class ActionOptions(BaseModel):
    """Options accepted by every action.

    ``None`` means "not supplied": the manager falls back to its defaults.
    An explicit empty list (e.g. ``includes=[]``) disables the default.
    """

    model_config = ConfigDict(extra="allow", arbitrary_types_allowed=True)

    search: dict[str, Any] | None = None
    order: Any = None
    scopes: Any = None
    page: PageOptions | None = None
    includes: Any = None
    select: str | list[str] | None = None

    def extra(self, key: str, default: Any = None) -> Any:
        """Return a non-enumerated option supplied by the caller."""
        return (self.model_extra or {}).get(key, default)
