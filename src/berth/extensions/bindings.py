"""Resource bindings: predicate-gated factories for managed resources.

A binding answers two questions for a declared service: *do I apply?* and,
if so, *build me the resource*. The registry asks every binding in
registration order and uses the first that applies, so predicates should be
mutually exclusive (for example, "a ``Container`` on the kubernetes
environment" versus "a ``Container`` anywhere else").

Example::

    class PodmanContainerBinding(ResourceBinding):
        name = "podman"

        def applies_for(self, context: BindingContext) -> bool:
            return isinstance(context.descriptor, Container) and \\
                context.scenario.environment_name == "podman"

        def init(self, context: BindingContext) -> ManagedResource:
            return PodmanResource(context.descriptor)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from berth.api.descriptors import ResourceDescriptor
    from berth.resources.base import ManagedResource
    from berth.scenario.context import ScenarioContext


@dataclass(frozen=True)
class BindingContext:
    """What a binding gets to look at when deciding and constructing."""

    service: str
    descriptor: ResourceDescriptor
    scenario: ScenarioContext


class ResourceBinding(ABC):
    """Predicate + factory pair producing a managed resource."""

    name: str = ""

    @abstractmethod
    def applies_for(self, context: BindingContext) -> bool:
        ...

    @abstractmethod
    def init(self, context: BindingContext) -> ManagedResource:
        ...

    @property
    def binding_name(self) -> str:
        return self.name or type(self).__name__

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.binding_name})"


__all__ = ["BindingContext", "ResourceBinding"]
