"""Tests for gherkin_query.core.errors module."""

import pytest

from gherkin_query.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    InvariantViolationError,
    QueryError,
    UnsupportedMessageError,
    categorize_error,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        """Every field defaults to None."""
        ctx = ErrorContext()
        assert ctx.test_case_started_id is None
        assert ctx.pickle_id is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        """to_dict includes only non-None fields, merged with metadata."""
        ctx = ErrorContext(
            test_case_started_id="started-1",
            test_step_id="step-1",
            metadata={"attempt": 2},
        )
        d = ctx.to_dict()
        assert d["test_case_started_id"] == "started-1"
        assert d["test_step_id"] == "step-1"
        assert d["attempt"] == 2
        assert "pickle_id" not in d
        assert "uri" not in d


class TestQueryError:
    """Test QueryError base class."""

    def test_create_minimal_error(self):
        """A bare error falls into the INTERNAL category."""
        err = QueryError("Something failed")
        assert err.message == "Something failed"
        assert str(err) == "Something failed"
        assert err.category == ErrorCategory.INTERNAL

    def test_create_with_category(self):
        err = QueryError("Missing", category=ErrorCategory.NOT_FOUND)
        assert err.category == ErrorCategory.NOT_FOUND

    def test_create_with_cause(self):
        """The cause is chained as __cause__."""
        cause = KeyError("started-1")
        err = QueryError("Lookup failed", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is cause

    def test_with_context_fluent_api(self):
        """Known fields are set, unknown keys land in metadata."""
        err = QueryError("Failed").with_context(
            pickle_id="pickle-1",
            test_run_hook_started_id="hook-started-1",
        )
        assert err.context.pickle_id == "pickle-1"
        assert err.context.metadata["test_run_hook_started_id"] == "hook-started-1"

    def test_with_context_returns_same_error(self):
        """with_context mutates and returns the error itself."""
        err = QueryError("Failed")
        assert err.with_context(uri="features/a.feature") is err

    def test_to_dict(self):
        """to_dict serialises message, category, context and cause."""
        err = QueryError("Failed", cause=ValueError("bad")).with_context(uri="features/a.feature")
        d = err.to_dict()
        assert d["error_type"] == "QueryError"
        assert d["message"] == "Failed"
        assert d["category"] == "INTERNAL"
        assert d["context"] == {"uri": "features/a.feature"}
        assert d["cause"] == "bad"

    def test_to_dict_without_context(self):
        assert "context" not in QueryError("Failed").to_dict()

    def test_repr(self):
        assert repr(QueryError("Failed")) == "QueryError('Failed', category=INTERNAL)"


class TestErrorSubclasses:
    """Each subclass carries its own default category."""

    def test_invariant_violation(self):
        err = InvariantViolationError("TestStep not found")
        assert isinstance(err, QueryError)
        assert err.category == ErrorCategory.INVARIANT

    def test_unsupported_message_is_type_error(self):
        """UnsupportedMessageError is also catchable as TypeError."""
        err = UnsupportedMessageError("Not a message")
        assert isinstance(err, TypeError)
        assert err.category == ErrorCategory.UNSUPPORTED

    def test_config_error(self):
        assert ConfigError("Bad feature").category == ErrorCategory.CONFIG

    def test_raise_and_catch_as_base(self):
        """Subclasses are caught as QueryError with their context."""
        with pytest.raises(QueryError) as exc_info:
            raise InvariantViolationError("Pickle has no ast node ids").with_context(pickle_id="p")
        assert exc_info.value.context.pickle_id == "p"


class TestCategorizeError:
    """Test categorize_error for library and builtin exceptions."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (InvariantViolationError("x"), ErrorCategory.INVARIANT),
            (ConfigError("x"), ErrorCategory.CONFIG),
            (KeyError("x"), ErrorCategory.NOT_FOUND),
            (TypeError("x"), ErrorCategory.UNSUPPORTED),
            (ValueError("x"), ErrorCategory.CONFIG),
            (RuntimeError("x"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_categories(self, error, expected):
        """Builtin exceptions map onto the closest category."""
        assert categorize_error(error) == expected
