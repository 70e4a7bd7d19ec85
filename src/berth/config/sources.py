"""
Configuration sources: scenario properties files and the process environment.

Manifesto:
    Every source answers one question, ``get(key) -> str | None``. Keeping
    the sources this small lets :mod:`berth.config.lookup` express the whole
    cascade in a handful of lines and lets tests swap any layer for a dict.

Properties files use the familiar ``key=value`` syntax::

    # shared by all services
    startup.timeout=2m
    # only for the "greetings" service
    services.greetings.startup.timeout=30s

All parsing is pure-Python.

Tags:
    configuration, properties, environment, cascading, berth

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path

from berth.core.logging import get_logger

logger = get_logger(__name__)

SERVICE_SCOPE_PREFIX = "services."

_PROPERTY_RE = re.compile(
    r"""
    ^                         # start of line
    \s*                       # optional leading whitespace
    (?P<key>[^=:\s]+)         # property name (dots, dashes allowed)
    \s*[=:]\s*                # separator with optional whitespace
    (?P<value>.*)             # everything after the separator
    $                         # end of line
    """,
    re.VERBOSE,
)


def parse_properties(text: str) -> dict[str, str]:
    """Parse properties-file content into a ``{key: value}`` mapping.

    Handles:
    * blank lines and ``#`` / ``!`` comments
    * ``key=value`` and ``key: value``
    * quoted values (single or double)
    """
    result: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line[0] in "#!":
            continue
        match = _PROPERTY_RE.match(line)
        if match is None:
            continue
        value = match.group("value").strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        result[match.group("key")] = value
    return result


class PropertiesSource:
    """File-backed scenario configuration.

    Service-scoped keys (``services.<name>.<key>``) take precedence over the
    plain key when read through :meth:`get_for_service`.
    """

    def __init__(self, values: Mapping[str, str] | None = None, path: Path | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})
        self.path = path

    @classmethod
    def from_file(cls, path: Path) -> PropertiesSource:
        """Load *path*; a missing file yields an empty source."""
        if not path.is_file():
            logger.debug("properties_file_missing", path=str(path))
            return cls(path=path)
        values = parse_properties(path.read_text(encoding="utf-8"))
        logger.debug("properties_file_loaded", path=str(path), keys=len(values))
        return cls(values, path=path)

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def get_for_service(self, service: str, key: str) -> str | None:
        scoped = self._values.get(f"{SERVICE_SCOPE_PREFIX}{service}.{key}")
        if scoped is not None and scoped.strip():
            return scoped
        return self._values.get(key)

    def keys(self) -> list[str]:
        return list(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PropertiesSource(path={self.path}, keys={len(self._values)})"


class EnvironmentSource:
    """Process environment as a configuration source.

    A dotted key such as ``startup.timeout`` is looked up verbatim first,
    then as ``BERTH_STARTUP_TIMEOUT`` and finally as ``STARTUP_TIMEOUT``.
    """

    def __init__(self, environ: Mapping[str, str] | None = None, prefix: str = "BERTH_") -> None:
        self._environ = environ if environ is not None else os.environ
        self.prefix = prefix

    @staticmethod
    def env_name(key: str) -> str:
        return re.sub(r"[^A-Za-z0-9]", "_", key).upper()

    def get(self, key: str) -> str | None:
        for candidate in (key, f"{self.prefix}{self.env_name(key)}", self.env_name(key)):
            value = self._environ.get(candidate)
            if value is not None:
                return value
        return None


__all__ = [
    "SERVICE_SCOPE_PREFIX",
    "EnvironmentSource",
    "PropertiesSource",
    "parse_properties",
]
