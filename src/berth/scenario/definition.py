"""Scenario declarations.

A ``ScenarioDefinition`` is the explicit replacement for annotated test
fields: it lists, in declaration order, which services the scenario needs
and which descriptor each one is backed by. Declaration order is start
order; teardown runs in reverse.

Example::

    definition = (
        ScenarioDefinition("greetings-lifecycle")
        .with_service("database", Container(image="postgres:16", ports=(5432,),
                                            expected_log="ready to accept connections"))
        .with_service("greetings", Process(command=("java", "-jar", "app.jar"),
                                           expected_log="Installed features"),
                      Service().with_property("db.port", "5432"))
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from berth.api.descriptors import ResourceDescriptor

if TYPE_CHECKING:
    from berth.api.service import Service


@dataclass(frozen=True)
class ServiceDeclaration:
    """One declared service: its name, handle and resource descriptor."""

    name: str
    service: Service
    descriptor: ResourceDescriptor


@dataclass
class ScenarioDefinition:
    """Ordered set of service declarations for one scenario."""

    name: str
    services: list[ServiceDeclaration] = field(default_factory=list)
    environment: str | None = None
    """Target environment override (``local``, ``docker``, ``kubernetes``)."""
    properties_file: Path | None = None
    """Scenario properties file override."""

    def with_service(
        self,
        name: str,
        descriptor: ResourceDescriptor,
        service: Service | None = None,
    ) -> ScenarioDefinition:
        if any(declared.name == name for declared in self.services):
            raise ValueError(f"Service '{name}' is already declared in scenario '{self.name}'")
        if service is None:
            from berth.api.service import Service

            service = Service()
        self.services.append(ServiceDeclaration(name, service, descriptor))
        return self

    @property
    def service_names(self) -> list[str]:
        return [declared.name for declared in self.services]


__all__ = ["ScenarioDefinition", "ServiceDeclaration"]
