"""Configuration for gherkin-query.

Downstream formatters usually know up front which optional indices they
need. ``QuerySettings`` lets that choice come from the environment (or a
``.env`` file) instead of being hard-coded at every call site.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup
    - **Environment-driven:** ``GHERKIN_QUERY_*`` variables and ``.env`` files
    - **Sensible defaults:** Every optional index enabled

Features:
    - **include_* flags:** One per optional repository index
    - **log_level / log_json:** Passed to :func:`gherkin_query.core.logging.configure_logging`
    - **get_settings():** Cached instance, reloadable for tests

Examples:
    >>> from gherkin_query.core.settings import QuerySettings
    >>> settings = QuerySettings(include_attachments=False)
    >>> settings.include_attachments
    False

Tags:
    settings, configuration, pydantic, environment, gherkin-query

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class QuerySettings(BaseSettings):
    """Settings for building a repository and configuring logging.

    Fields
    ──────
    include_attachments              : Index Attachment messages
    include_gherkin_documents        : Index GherkinDocument messages (lineage, steps)
    include_hooks                    : Index Hook messages
    include_step_definitions         : Index StepDefinition messages
    include_suggestions              : Index Suggestion messages
    include_undefined_parameter_types: Index UndefinedParameterType messages
    log_level                        : Structlog log level
    log_json                         : JSON output (None = auto-detect tty)
    """

    model_config = SettingsConfigDict(
        env_prefix="GHERKIN_QUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Optional indices ─────────────────────────────────────────
    include_attachments: bool = True
    include_gherkin_documents: bool = True
    include_hooks: bool = True
    include_step_definitions: bool = True
    include_suggestions: bool = True
    include_undefined_parameter_types: bool = True

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Structlog log level")
    log_json: bool | None = Field(
        default=None,
        description="Render JSON logs; None picks JSON when stdout is not a tty",
    )

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}")
        return level


_settings_cache: dict[str, QuerySettings] = {}


def get_settings(*, _force_reload: bool = False) -> QuerySettings:
    """Load, validate, and cache a :class:`QuerySettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = QuerySettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Drop the cached settings so the next :func:`get_settings` re-reads the environment."""
    _settings_cache.clear()


__all__ = ["QuerySettings", "get_settings", "clear_settings_cache"]
