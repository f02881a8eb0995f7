"""Process configuration loaded from MANAGEABLE_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from manageable.models.enums import DatetimePrecision, LoadingStrategy


class ManageableSettings(BaseSettings):
    """Initial values for the configuration registry.

    All fields are read from environment variables with the ``MANAGEABLE_``
    prefix.  For example, ``MANAGEABLE_AUTHORIZATION=policy`` maps to
    ``authorization``.  The registry re-validates every value through its
    setters, so an invalid environment fails at startup with
    ``ConfigurationError`` rather than on the first call.
    """

    model_config = SettingsConfigDict(
        env_prefix="MANAGEABLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Adapters --------------------------------------------------------------
    authorization: str | None = None
    """``policy`` or ``ability``.  Unset disables authorization checks."""

    search: str | None = None
    """``predicates``.  Unset makes the search stage a no-op."""

    pagination: str | None = None
    """``offset``.  Unset makes the paginate stage a no-op."""

    # -- Managers --------------------------------------------------------------
    loading_strategy: str = LoadingStrategy.SELECTIN.value
    manager_suffix: str = "Manager"
    default_page_size: int = 25

    # -- Attribute normalization -----------------------------------------------
    decimal_separator: str = "."
    """Separator of the active number format; ``,`` enables comma normalization."""

    date_day_first: bool = True
    """Read ``8-4-91`` as 8 April 1991."""

    datetime_precision: str = DatetimePrecision.MIN.value


@lru_cache(maxsize=1)
def get_settings() -> ManageableSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return ManageableSettings()
