"""Tests for berth.core.errors."""

from __future__ import annotations

import pytest

from berth.core.errors import (
    BackendCommandError,
    BackendInitializationError,
    BerthError,
    ErrorCategory,
    InvalidConfigValueError,
    ReadinessTimeoutError,
    TeardownError,
    UnsupportedBackendError,
    UnsupportedEnvironmentError,
    categorize_error,
    is_retryable,
)


class TestBerthError:
    """Tests for the base error."""

    def test_defaults(self):
        error = BerthError("boom")
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_with_context_known_and_metadata(self):
        error = BerthError("boom").with_context(service="db", attempt=2)
        assert error.context.service == "db"
        assert error.context.metadata == {"attempt": 2}

    def test_cause_chained(self):
        cause = OSError("disk")
        error = BerthError("boom", cause=cause)
        assert error.__cause__ is cause

    def test_to_dict(self):
        error = BerthError("boom", cause=ValueError("bad")).with_context(scenario_id="s-1")
        data = error.to_dict()
        assert data["error_type"] == "BerthError"
        assert data["context"] == {"scenario_id": "s-1"}
        assert data["cause"] == "bad"


class TestSubclasses:
    """Categories and messages of the specific errors."""

    @pytest.mark.parametrize(
        "error, category",
        [
            (UnsupportedBackendError("db", "Container(image='x')"), ErrorCategory.BINDING),
            (BackendInitializationError("db", "docker", RuntimeError("x")), ErrorCategory.BINDING),
            (InvalidConfigValueError("k", "v", "integer"), ErrorCategory.CONFIG),
            (UnsupportedEnvironmentError("no cluster"), ErrorCategory.ENVIRONMENT),
            (BackendCommandError("exit 1", returncode=1), ErrorCategory.BACKEND),
            (ReadinessTimeoutError("db", 1.5), ErrorCategory.LIFECYCLE),
        ],
    )
    def test_categories(self, error, category):
        assert error.category == category

    def test_unsupported_backend_lists_available(self):
        error = UnsupportedBackendError("db", "Process(command='x')", available=["docker", "kubernetes"])
        assert "docker, kubernetes" in str(error)
        assert error.context.service == "db"

    def test_unsupported_backend_without_bindings(self):
        assert "(none)" in str(UnsupportedBackendError("db", "x"))

    def test_initialization_wraps_cause(self):
        cause = RuntimeError("image pull failed")
        error = BackendInitializationError("db", "docker", cause)
        assert error.cause is cause
        assert error.context.backend == "docker"

    def test_teardown_aggregates(self):
        first, second = RuntimeError("a"), RuntimeError("b")
        error = TeardownError([("db", first), ("app", second)])
        assert error.errors == [("db", first), ("app", second)]
        assert "2 service(s)" in str(error)
        assert error.cause is first


class TestHelpers:
    """Tests for is_retryable() and categorize_error()."""

    def test_is_retryable(self):
        assert is_retryable(BackendCommandError("timeout", retryable=True))
        assert not is_retryable(BerthError("x"))
        assert is_retryable(ConnectionError())
        assert not is_retryable(ValueError())

    def test_categorize(self):
        assert categorize_error(UnsupportedEnvironmentError("x")) == ErrorCategory.ENVIRONMENT
        assert categorize_error(OSError()) == ErrorCategory.BACKEND
        assert categorize_error(KeyError()) == ErrorCategory.CONFIG
        assert categorize_error(RuntimeError()) == ErrorCategory.UNKNOWN
