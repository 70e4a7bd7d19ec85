"""
Structured error types for berth.

Every failure raised by berth carries a category, an explicit retry flag,
structured context and an optional chained cause. Scenario tooling relies on
these attributes to decide whether a failure aborts setup, should be
recorded against the scenario, or can be aggregated during teardown.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure mode of the lifecycle
    - **Explicit Retry Semantics:** Nothing in the lifecycle retries by itself
    - **Rich Context:** Errors carry scenario/service metadata for the log
    - **Error Chaining:** The backend exception is preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        BerthError                                │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  BindingError           ConfigError          LifecycleError     │
        │  (BINDING)              (CONFIG)             (LIFECYCLE)        │
        │       │                      │                    │              │
        │  UnsupportedBackend     InvalidConfigValue   ReadinessTimeout   │
        │  BackendInitialization  ParameterResolution  ServiceStateError  │
        │  RegistryError                               TeardownError      │
        │                                                                  │
        │  UnsupportedEnvironmentError (ENVIRONMENT)                       │
        │  BackendCommandError (BACKEND)                                   │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = UnsupportedBackendError("greetings", "Container")
    >>> error.category
    <ErrorCategory.BINDING: 'BINDING'>
    >>> error.retryable
    False

Tags:
    error-handling, exception-hierarchy, lifecycle, bindings, berth

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    BINDING = "BINDING"
    CONFIG = "CONFIG"
    ENVIRONMENT = "ENVIRONMENT"
    LIFECYCLE = "LIFECYCLE"
    BACKEND = "BACKEND"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error."""

    scenario_id: str | None = None
    service: str | None = None
    backend: str | None = None
    command: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key in ("scenario_id", "service", "backend", "command"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class BerthError(Exception):
    """
    Base exception for all berth errors.

    All BerthError instances carry:
    - **category:** ErrorCategory enum for classification
    - **retryable:** Whether calling the operation again may succeed
    - **context:** ErrorContext with scenario/service metadata
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = BerthError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(service="greetings").context.service
        'greetings'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BerthError:
        """
        Add context to this error (fluent API).

        Usage:
            raise BackendCommandError("kubectl failed").with_context(
                service="greetings", command="kubectl apply"
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# BINDING ERRORS
# =============================================================================


class BindingError(BerthError):
    """Failure while selecting or constructing a resource binding."""

    default_category = ErrorCategory.BINDING


class UnsupportedBackendError(BindingError):
    """No registered binding applies to a declared service."""

    def __init__(self, service: str, descriptor: str, *, available: list[str] | None = None):
        self.service = service
        self.descriptor = descriptor
        self.available = available or []
        names = ", ".join(self.available) if self.available else "(none)"
        super().__init__(
            f"No resource binding applies to service '{service}' ({descriptor}). "
            f"Registered bindings: {names}"
        )
        self.context.service = service


class BackendInitializationError(BindingError):
    """A binding raised while constructing the managed resource."""

    def __init__(self, service: str, binding: str, cause: Exception):
        self.service = service
        self.binding = binding
        super().__init__(
            f"Could not create the managed resource for '{service}' using {binding}: {cause}",
            cause=cause,
        )
        self.context.service = service
        self.context.backend = binding


class RegistryError(BindingError):
    """Invalid use of the extension registry."""


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(BerthError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG


class InvalidConfigValueError(ConfigError):
    """A typed configuration accessor could not parse the resolved value."""

    def __init__(self, key: str, value: Any, expected: str):
        self.key = key
        self.value = value
        self.expected = expected
        super().__init__(f"Invalid value for '{key}': {value!r} is not a valid {expected}")


class ParameterResolutionError(ConfigError):
    """No extension could provide a requested parameter."""

    def __init__(self, name: str, requested_type: type):
        self.name = name
        self.requested_type = requested_type
        super().__init__(f"Failed to inject '{name}': no provider for {requested_type.__name__}")


# =============================================================================
# ENVIRONMENT / BACKEND ERRORS
# =============================================================================


class UnsupportedEnvironmentError(BerthError):
    """The backend cannot satisfy the declared resource in this environment."""

    default_category = ErrorCategory.ENVIRONMENT


class BackendCommandError(BerthError):
    """A backend command (docker, kubectl, subprocess) failed."""

    default_category = ErrorCategory.BACKEND

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "", **kwargs: Any):
        super().__init__(message, **kwargs)
        self.returncode = returncode
        self.stderr = stderr


# =============================================================================
# LIFECYCLE ERRORS
# =============================================================================


class LifecycleError(BerthError):
    """Service or scenario lifecycle error."""

    default_category = ErrorCategory.LIFECYCLE


class ServiceStateError(LifecycleError):
    """An operation is not allowed in the service's current state."""


class ReadinessTimeoutError(LifecycleError):
    """A service did not pass its readiness gate in time."""

    def __init__(self, service: str, timeout: float):
        self.service = service
        self.timeout = timeout
        super().__init__(f"Service '{service}' did not become ready within {timeout:g}s")
        self.context.service = service


class TeardownError(LifecycleError):
    """One or more services failed to close during scenario teardown."""

    def __init__(self, errors: list[tuple[str, Exception]]):
        self.errors = list(errors)
        details = "; ".join(f"{name}: {exc}" for name, exc in self.errors)
        super().__init__(
            f"{len(self.errors)} service(s) failed during teardown: {details}",
            cause=self.errors[0][1] if self.errors else None,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, BerthError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, BerthError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.BACKEND
    if isinstance(error, (ValueError, KeyError)):
        return ErrorCategory.CONFIG
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BerthError",
    "BindingError",
    "UnsupportedBackendError",
    "BackendInitializationError",
    "RegistryError",
    "ConfigError",
    "InvalidConfigValueError",
    "ParameterResolutionError",
    "UnsupportedEnvironmentError",
    "BackendCommandError",
    "LifecycleError",
    "ServiceStateError",
    "ReadinessTimeoutError",
    "TeardownError",
    "is_retryable",
    "categorize_error",
]
