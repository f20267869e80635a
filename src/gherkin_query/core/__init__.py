"""Shared primitives: errors, logging and settings."""

from gherkin_query.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvariantViolationError,
    QueryError,
    UnsupportedMessageError,
    categorize_error,
)
from gherkin_query.core.logging import LogContext, configure_logging, get_logger
from gherkin_query.core.settings import QuerySettings, get_settings

__all__ = [
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "InvariantViolationError",
    "QueryError",
    "UnsupportedMessageError",
    "categorize_error",
    "LogContext",
    "configure_logging",
    "get_logger",
    "QuerySettings",
    "get_settings",
]
