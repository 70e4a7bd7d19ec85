"""Extension registry: the explicit replacement for service-loader discovery.

Manifesto:
    Which backends and lifecycle extensions exist is decided once, at
    startup, in a fixed order. After that the set is frozen: a scenario
    that is already running must never see a binding appear under it.

ARCHITECTURE
────────────
::

    ExtensionRegistry
      register_builtins()      → process, kubernetes, docker bindings
                                 + the kubernetes extension
      discover()               → entry points ``berth.bindings`` and
                                 ``berth.extensions`` (sorted by name), then freeze
      resolve(context)         → first binding whose applies_for() is true
      create_resource(context) → resolve + binding.init(), errors wrapped
      create_extensions(scen)  → one fresh instance per factory, filtered
                                 by applies_for(scenario)

    get_registry()             → process-wide default (builtins + discover)
    reset_registry()           → drop the default (for testing)

Third-party packages contribute through entry points::

    [project.entry-points."berth.bindings"]
    podman = "berth_podman:PodmanContainerBinding"

    [project.entry-points."berth.extensions"]
    vault = "berth_vault:VaultExtension"

BEST PRACTICES
──────────────
- Tests should build their own ``ExtensionRegistry()`` rather than
  mutating the default one; use ``reset_registry()`` if they must.
- Keep binding predicates mutually exclusive; order is a tie-breaker,
  not a feature.

Tags:
    berth, extensions, registry, discovery, entry-points

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Any

from berth.core.errors import (
    BackendInitializationError,
    BerthError,
    RegistryError,
    UnsupportedBackendError,
)
from berth.core.logging import get_logger
from berth.extensions.bindings import BindingContext, ResourceBinding
from berth.extensions.lifecycle import LifecycleExtension

if TYPE_CHECKING:
    from berth.resources.base import ManagedResource
    from berth.scenario.context import ScenarioContext

logger = get_logger(__name__)

BINDINGS_GROUP = "berth.bindings"
EXTENSIONS_GROUP = "berth.extensions"

ExtensionFactory = Callable[[], LifecycleExtension]


class ExtensionRegistry:
    """Ordered, freezable set of resource bindings and extension factories."""

    def __init__(self) -> None:
        self._bindings: list[ResourceBinding] = []
        self._extensions: list[tuple[str, ExtensionFactory]] = []
        self._frozen = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_binding(self, binding: ResourceBinding) -> ResourceBinding:
        self._check_mutable()
        if not isinstance(binding, ResourceBinding):
            raise RegistryError(f"{binding!r} is not a ResourceBinding")
        if binding.binding_name in self.binding_names:
            raise RegistryError(f"Binding '{binding.binding_name}' is already registered")
        self._bindings.append(binding)
        logger.debug("binding_registered", binding=binding.binding_name)
        return binding

    def register_extension(self, factory: ExtensionFactory, name: str | None = None) -> ExtensionFactory:
        """Register a zero-argument factory (usually the extension class)."""
        self._check_mutable()
        if not callable(factory):
            raise RegistryError(f"{factory!r} is not callable")
        name = name or getattr(factory, "name", "") or getattr(factory, "__name__", repr(factory))
        if name in self.extension_names:
            raise RegistryError(f"Extension '{name}' is already registered")
        self._extensions.append((name, factory))
        logger.debug("extension_registered", extension=name)
        return factory

    def register_builtins(self) -> ExtensionRegistry:
        from berth.resources.docker import DockerContainerBinding
        from berth.resources.kubernetes import KubernetesContainerBinding, KubernetesExtension
        from berth.resources.process import LocalProcessBinding

        self.register_binding(LocalProcessBinding())
        self.register_binding(KubernetesContainerBinding())
        self.register_binding(DockerContainerBinding())
        self.register_extension(KubernetesExtension)
        return self

    def discover(self) -> ExtensionRegistry:
        """Load entry-point contributions, then freeze the registry."""
        self._check_mutable()
        for ep in _sorted_entry_points(BINDINGS_GROUP):
            loaded = _load(ep)
            binding = loaded() if isinstance(loaded, type) else loaded
            self.register_binding(binding)
        for ep in _sorted_entry_points(EXTENSIONS_GROUP):
            loaded = _load(ep)
            if isinstance(loaded, type) and not issubclass(loaded, LifecycleExtension):
                raise RegistryError(f"Entry point '{ep.name}' is not a LifecycleExtension")
            self.register_extension(loaded, ep.name)
        self.freeze()
        logger.info(
            "registry_discovered",
            bindings=self.binding_names,
            extensions=self.extension_names,
        )
        return self

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RegistryError("Extension registry is frozen; register before discovery")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def bindings(self) -> tuple[ResourceBinding, ...]:
        return tuple(self._bindings)

    @property
    def binding_names(self) -> list[str]:
        return [b.binding_name for b in self._bindings]

    @property
    def extension_names(self) -> list[str]:
        return [name for name, _ in self._extensions]

    def resolve(self, context: BindingContext) -> ResourceBinding:
        for binding in self._bindings:
            if binding.applies_for(context):
                logger.debug("binding_selected", service=context.service, binding=binding.binding_name)
                return binding
        raise UnsupportedBackendError(
            context.service,
            context.descriptor.describe(),
            available=self.binding_names,
        ).with_context(scenario_id=context.scenario.id)

    def create_resource(self, context: BindingContext) -> ManagedResource:
        binding = self.resolve(context)
        try:
            return binding.init(context)
        except BerthError:
            raise
        except Exception as e:
            raise BackendInitializationError(context.service, binding.binding_name, e) from e

    def create_extensions(self, scenario: ScenarioContext) -> list[LifecycleExtension]:
        """Fresh extension instances that apply to *scenario*, in order."""
        active: list[LifecycleExtension] = []
        for name, factory in self._extensions:
            extension = factory()
            if extension.applies_for(scenario):
                active.append(extension)
            else:
                logger.debug("extension_skipped", extension=name, scenario_id=scenario.id)
        return active

    def clear(self) -> None:
        self._bindings.clear()
        self._extensions.clear()
        self._frozen = False

    def __repr__(self) -> str:
        return (
            f"ExtensionRegistry(bindings={self.binding_names}, "
            f"extensions={self.extension_names}, frozen={self._frozen})"
        )


def _sorted_entry_points(group: str) -> list[Any]:
    return sorted(entry_points(group=group), key=lambda ep: ep.name)


def _load(ep: Any) -> Any:
    try:
        return ep.load()
    except Exception as e:
        raise RegistryError(f"Failed to load entry point '{ep.name}' ({ep.value})", cause=e) from e


# Process-wide default
_default_registry: ExtensionRegistry | None = None


def get_registry() -> ExtensionRegistry:
    """Default registry: built-ins plus entry-point contributions, frozen."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ExtensionRegistry().register_builtins().discover()
    return _default_registry


def reset_registry() -> None:
    global _default_registry
    _default_registry = None


__all__ = [
    "BINDINGS_GROUP",
    "EXTENSIONS_GROUP",
    "ExtensionFactory",
    "ExtensionRegistry",
    "get_registry",
    "reset_registry",
]
