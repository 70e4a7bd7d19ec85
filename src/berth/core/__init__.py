"""Ambient stack shared by every berth package: errors, logging, settings."""

from berth.core.errors import (
    BackendCommandError,
    BackendInitializationError,
    BerthError,
    ErrorCategory,
    InvalidConfigValueError,
    ParameterResolutionError,
    ReadinessTimeoutError,
    RegistryError,
    ServiceStateError,
    TeardownError,
    UnsupportedBackendError,
    UnsupportedEnvironmentError,
)
from berth.core.settings import BerthSettings

__all__ = [
    "BackendCommandError",
    "BackendInitializationError",
    "BerthError",
    "BerthSettings",
    "ErrorCategory",
    "InvalidConfigValueError",
    "ParameterResolutionError",
    "ReadinessTimeoutError",
    "RegistryError",
    "ServiceStateError",
    "TeardownError",
    "UnsupportedBackendError",
    "UnsupportedEnvironmentError",
]
