"""
Structured error types for gherkin-query.

Errors carry a category and a structured context so that callers can tell a
corrupt envelope stream apart from a programming mistake without parsing
messages.

Manifesto:
    The read model distinguishes three kinds of failure:

    - **Not found:** a referenced entity was never ingested, or the optional
      index holding it is disabled. This is expected during a run and is
      *never raised*; queries return ``None`` or an empty list.
    - **Invariant violation:** a relationship the message protocol guarantees
      is missing (a step event whose test case attempt is unknown, a pickle
      step without AST node ids). Raised as :class:`InvariantViolationError`.
    - **Unsupported message:** an envelope carrying something that is not a
      message. Raised as :class:`UnsupportedMessageError`.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────┐
        │                     QueryError                        │
        │         (category, context, cause)                    │
        ├──────────────────────────────────────────────────────┤
        │  InvariantViolationError   (INVARIANT)                │
        │  UnsupportedMessageError   (UNSUPPORTED, TypeError)   │
        │  ConfigError               (CONFIG)                   │
        └──────────────────────────────────────────────────────┘

Examples:
    >>> error = InvariantViolationError("TestCaseStarted not found")
    >>> error.category
    <ErrorCategory.INVARIANT: 'INVARIANT'>
    >>> error.with_context(test_case_started_id="tcs-1").context.test_case_started_id
    'tcs-1'

Tags:
    error-handling, exception-hierarchy, error-context, gherkin-query

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Categories used to classify read-model errors.

    NOT_FOUND is listed for completeness: lookups that miss return an empty
    result instead of raising, but :func:`categorize_error` still maps
    ``KeyError``/``LookupError`` to it.
    """

    NOT_FOUND = "NOT_FOUND"
    INVARIANT = "INVARIANT"
    CONFIG = "CONFIG"
    UNSUPPORTED = "UNSUPPORTED"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Identifiers of the messages involved in an error.

    Only the fields that were set end up in :meth:`to_dict`, which keeps log
    lines short.

    Attributes:
        test_case_started_id: Attempt the failing lookup started from
        test_step_id: Test step involved
        pickle_id: Pickle involved
        pickle_step_id: Pickle step involved
        uri: Gherkin document uri
        metadata: Additional key-value pairs
    """

    test_case_started_id: str | None = None
    test_step_id: str | None = None
    pickle_id: str | None = None
    pickle_step_id: str | None = None
    uri: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["test_case_started_id", "test_step_id", "pickle_id",
                    "pickle_step_id", "uri"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class QueryError(Exception):
    """
    Base exception for all gherkin-query errors.

    Subclasses set ``default_category``; callers may override it per
    instance. ``cause`` is chained onto ``__cause__`` so tracebacks show the
    original exception.

    Examples:
        >>> error = QueryError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'QueryError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> QueryError:
        """
        Add context to this error (fluent API).

        Usage:
            raise InvariantViolationError("TestStep not found").with_context(
                test_step_id=event.test_step_id,
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class InvariantViolationError(QueryError):
    """A relationship guaranteed by the message protocol is missing.

    Signals a corrupt or out-of-order envelope stream; not recoverable by the
    read model itself.
    """

    default_category = ErrorCategory.INVARIANT


class UnsupportedMessageError(QueryError, TypeError):
    """An envelope was built around a value that is not a known message."""

    default_category = ErrorCategory.UNSUPPORTED


class ConfigError(QueryError):
    """Invalid repository or naming configuration."""

    default_category = ErrorCategory.CONFIG


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, QueryError):
        return error.category
    if isinstance(error, LookupError):
        return ErrorCategory.NOT_FOUND
    if isinstance(error, TypeError):
        return ErrorCategory.UNSUPPORTED
    if isinstance(error, ValueError):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "QueryError",
    "InvariantViolationError",
    "UnsupportedMessageError",
    "ConfigError",
    "categorize_error",
]
