"""
Centralized settings for idspine.

Identity assignment takes its configuration as explicit, immutable objects
on every call. ``IdentitySettings`` is the place a deployment keeps its
defaults for those objects (digest algorithm, number precision, worker
count) so they can be set from ``IDSPINE_*`` environment variables or a
``.env`` file. Nothing in the engine reads settings on its own: callers
build a policy with ``IdentityPolicy.from_settings(get_settings(), ...)``
or pass values explicitly.

Manifesto:
    - **Pydantic validation:** Out-of-range values fail at startup
    - **Environment-driven:** ``IDSPINE_`` prefix, ``.env`` support
    - **Explicit use:** Settings seed policies, never mutate engine state

Examples:
    >>> from idspine.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.hash_algorithm
    'sha256/1'

Tags:
    settings, configuration, pydantic, environment, idspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from idspine.identity.digest import available_algorithms

_UNICODE_FORMS = {"NFC", "NFD", "NFKC", "NFKD"}
_LOG_FORMATS = {"json", "console", "auto"}


class IdentitySettings(BaseSettings):
    """Deployment defaults for identity assignment.

    All fields can be set via ``IDSPINE_*`` environment variables (e.g.
    ``IDSPINE_HASH_ALGORITHM=blake2b-256/1``).
    """

    model_config = SettingsConfigDict(
        env_prefix="IDSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Digest ───────────────────────────────────────────────────
    hash_algorithm: str = Field(default="sha256/1", description="Versioned digest algorithm id")
    digest_length: int = Field(default=32, description="Hex characters kept from the digest")

    # ── Canonicalization ─────────────────────────────────────────
    number_precision: int = Field(default=17, description="Significant digits kept for fractional numbers")
    unicode_form: str = Field(default="NFC")
    nan_as_null: bool = Field(default=True)

    # ── Execution ────────────────────────────────────────────────
    max_workers: int = Field(default=1, description="Worker threads for per-record hashing")
    parallel_threshold: int = Field(default=256, description="Minimum batch size for threading")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto")
    service_name: str = Field(default="idspine")

    @field_validator("hash_algorithm")
    @classmethod
    def _known_algorithm(cls, value: str) -> str:
        if value not in available_algorithms():
            raise ValueError(f"must be one of {available_algorithms()}")
        return value

    @field_validator("digest_length", "number_precision", "max_workers", "parallel_threshold")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("unicode_form")
    @classmethod
    def _unicode_form(cls, value: str) -> str:
        value = value.upper()
        if value not in _UNICODE_FORMS:
            raise ValueError(f"must be one of {sorted(_UNICODE_FORMS)}")
        return value

    @field_validator("log_format")
    @classmethod
    def _log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in _LOG_FORMATS:
            raise ValueError(f"must be one of {sorted(_LOG_FORMATS)}")
        return value

    @field_validator("log_level")
    @classmethod
    def _log_level(cls, value: str) -> str:
        return value.upper()


@lru_cache(maxsize=1)
def get_settings() -> IdentitySettings:
    """Return the cached settings instance."""
    return IdentitySettings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next ``get_settings()`` re-reads the environment."""
    get_settings.cache_clear()


__all__ = [
    "IdentitySettings",
    "get_settings",
    "clear_settings_cache",
]
