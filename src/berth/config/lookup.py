"""
Cascading property lookup.

Manifesto:
    A service's effective configuration is spread over several places: what
    the test put into the service's store at runtime, the scenario's
    properties file, the properties declared on the service, and the
    process environment. Resolution must be predictable and debuggable, so
    the order is fixed and the first non-blank value wins::

        service store  →  scenario file  →  declared properties  →  environment  →  default

Results are never cached; every call reads the current state.

Examples:
    >>> timeout = PropertyLookup("startup.timeout", "5m")
    >>> timeout.get_as_duration(service_context)
    300.0

Tags:
    configuration, lookup, cascading, typed-accessors, berth

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING

from berth.config.sources import EnvironmentSource
from berth.core.errors import InvalidConfigValueError

if TYPE_CHECKING:
    from berth.scenario.context import ServiceContext

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DURATION_RE = re.compile(r"^(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h)?$")
_PLACEHOLDER_RE = re.compile(r"\$\{(?P<key>[^}:]+)(?::(?P<default>[^}]*))?\}")

_DURATION_FACTORS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def _is_not_blank(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


class PropertyLookup:
    """Resolve one configuration key through the cascade."""

    def __init__(self, key: str, default: str = "") -> None:
        self.key = key
        self.default = default

    def get(
        self,
        service: ServiceContext | None = None,
        *,
        environment: EnvironmentSource | None = None,
    ) -> str:
        """Return the first non-blank value for the key.

        Without a service context only the environment and the default
        are consulted.
        """
        if service is not None:
            value = service.get(self.key)
            if _is_not_blank(value):
                return value

            value = service.scenario.configuration.get_for_service(service.name, self.key)
            if _is_not_blank(value):
                return value

            value = service.owner.get_property(self.key)
            if _is_not_blank(value):
                return value

            if environment is None:
                environment = service.scenario.environment

        value = (environment or EnvironmentSource()).get(self.key)
        if _is_not_blank(value):
            return value

        return self.default

    def get_as_boolean(self, service: ServiceContext | None = None, **kwargs) -> bool:
        return self.get(service, **kwargs).lower() == "true"

    def get_as_integer(self, service: ServiceContext | None = None, **kwargs) -> int:
        value = self.get(service, **kwargs)
        if not _INTEGER_RE.match(value.strip()):
            raise InvalidConfigValueError(self.key, value, "integer")
        return int(value)

    def get_as_list(self, service: ServiceContext | None = None, **kwargs) -> list[str]:
        value = self.get(service, **kwargs)
        if not value:
            return []
        return value.split(",")

    def get_as_duration(self, service: ServiceContext | None = None, **kwargs) -> float:
        """Parse ``500ms``, ``30s``, ``5m``, ``1h`` or bare seconds into seconds."""
        value = self.get(service, **kwargs)
        match = _DURATION_RE.match(value.strip())
        if match is None:
            raise InvalidConfigValueError(self.key, value, "duration")
        return float(match.group("amount")) * _DURATION_FACTORS[match.group("unit") or "s"]

    def __repr__(self) -> str:
        return f"PropertyLookup({self.key!r}, default={self.default!r})"


def resolve_placeholders(value: str, resolve: Callable[[str], str | None]) -> str:
    """Replace ``${key}`` and ``${key:default}`` placeholders in *value*.

    Raises:
        InvalidConfigValueError: If a placeholder has no value and no default.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group("key")
        resolved = resolve(key)
        if _is_not_blank(resolved):
            return resolved
        default = match.group("default")
        if default is None:
            raise InvalidConfigValueError(key, value, "resolvable placeholder")
        return default

    return _PLACEHOLDER_RE.sub(_replace, value)


__all__ = ["PropertyLookup", "resolve_placeholders"]
