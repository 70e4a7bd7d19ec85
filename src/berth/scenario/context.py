"""Scenario and service runtime contexts.

Manifesto:
    A scenario is one test run: it has an identity, a log artifact and a
    single bit of shared mutable state, whether it failed. Each declared
    service gets a ``ServiceContext`` that points back at the scenario and
    carries a small key/value store that extensions use to hand things to
    backends (a cluster client, an injected environment variable).

ARCHITECTURE
────────────
::

    ScenarioContext (1) ◄───────── (n) ServiceContext ──► Service ──► ManagedResource
      id, log_file, failed            name, store
      configuration (file)            service_folder
      environment (env vars)

BEST PRACTICES
──────────────
- Only ever set the failure flag through ``mark_failed()``; it never resets.
- Keep store keys namespaced (``kubernetes.client``) to avoid collisions.

Tags:
    berth, scenario, context, identity, failure-flag

Doc-Types:
    api-reference
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from berth.config.sources import EnvironmentSource, PropertiesSource
from berth.core.settings import BerthSettings

if TYPE_CHECKING:
    from berth.api.service import Service

_ID_UNSAFE_RE = re.compile(r"[^a-z0-9]+")


def generate_scenario_id(name: str, now: datetime | None = None) -> str:
    """Build a DNS-label-safe scenario id: ``<slug>-<yyyymmddhhmmssfff>``."""
    slug = _ID_UNSAFE_RE.sub("-", name.lower()).strip("-")[:40].rstrip("-") or "scenario"
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%d%H%M%S%f")[:17]
    return f"{slug}-{stamp}"


class ScenarioContext:
    """Identity, configuration and failure state of one test run."""

    def __init__(
        self,
        name: str,
        settings: BerthSettings | None = None,
        *,
        scenario_id: str | None = None,
        environment_name: str | None = None,
        configuration: PropertiesSource | None = None,
        environment: EnvironmentSource | None = None,
    ) -> None:
        self.name = name
        self.settings = settings or BerthSettings()
        self.id = scenario_id or generate_scenario_id(name)
        self.environment_name = environment_name or self.settings.environment
        self.configuration = configuration or PropertiesSource.from_file(self.settings.properties_file)
        self.environment = environment or EnvironmentSource()
        self.log_file: Path = self.settings.resolved_log_dir() / f"{self.id}.log"
        self.target_folder: Path = self.settings.output_dir / self.id
        self.started_at = datetime.now(UTC)
        self.current_test: str | None = None
        self._failed = False

    @property
    def failed(self) -> bool:
        return self._failed

    def mark_failed(self) -> None:
        self._failed = True

    def __repr__(self) -> str:
        return f"ScenarioContext(id={self.id!r}, failed={self._failed})"


class ServiceContext:
    """Runtime record binding a declared service to its scenario."""

    def __init__(self, name: str, scenario: ScenarioContext, owner: Service) -> None:
        self.name = name
        self.scenario = scenario
        self.owner = owner
        self._store: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.get(key, default)

    def put(self, key: str, value: Any) -> None:
        self._store[key] = value

    def remove(self, key: str) -> None:
        self._store.pop(key, None)

    @property
    def scenario_id(self) -> str:
        return self.scenario.id

    @property
    def service_folder(self) -> Path:
        return self.scenario.target_folder / self.name

    def __repr__(self) -> str:
        return f"ServiceContext(name={self.name!r}, scenario={self.scenario.id!r})"


__all__ = ["ScenarioContext", "ServiceContext", "generate_scenario_id"]
