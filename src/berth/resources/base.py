"""The managed-resource contract every backend implements.

A managed resource is the controllable thing behind a declared service: a
local process, a container, a cluster deployment. The scenario runner and
the ``Service`` facade only ever talk to this contract.

Lifecycle:

    .. code-block:: text

        constructed (descriptor) ──bind(context)──► bound
             │
             ▼
        start() ── first call ──► initialize ──┐
        start() ── later calls ─► update ──────┤──► running once the
             ▲                                  │    readiness gate fires
             └──────────── stop() ◄─────────────┘
        close() ── releases everything, terminal

Subclasses MUST implement:
    display_name, start, stop, get_host, get_mapped_port, is_running

Subclasses MAY override:
    restart (default: stop then start), close (default: stop),
    log_watcher (default: None)

Tags:
    berth, resources, contract, lifecycle, abstract

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from berth.config.lookup import PropertyLookup, resolve_placeholders
from berth.core.errors import ServiceStateError

if TYPE_CHECKING:
    from berth.resources.logs import LogWatcher
    from berth.scenario.context import ServiceContext


class ManagedResource(ABC):
    """Base class for every backend's resource implementation."""

    def __init__(self) -> None:
        self.context: ServiceContext | None = None

    def bind(self, context: ServiceContext) -> None:
        """Attach the service context the resource works for."""
        self.context = context

    @property
    def bound_context(self) -> ServiceContext:
        if self.context is None:
            raise ServiceStateError(f"{type(self).__name__} is not bound to a service")
        return self.context

    @property
    def name(self) -> str:
        return self.bound_context.name

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human readable identity (image, command)."""

    @abstractmethod
    def start(self) -> None:
        """Initialize on the first call, update in place afterwards."""

    @abstractmethod
    def stop(self) -> None:
        """Release the running workload, keeping state for a later start."""

    @abstractmethod
    def get_host(self) -> str:
        ...

    @abstractmethod
    def get_mapped_port(self, port: int) -> int:
        """Externally reachable port for a declared port."""

    @abstractmethod
    def is_running(self) -> bool:
        """True once the readiness gate fired, not when start() returned."""

    def restart(self) -> None:
        self.stop()
        self.start()

    def close(self) -> None:
        """Release everything the resource owns. Called once, at teardown."""
        self.stop()

    @property
    def log_watcher(self) -> LogWatcher | None:
        return None

    def logs(self) -> list[str]:
        """Snapshot of the output observed so far."""
        watcher = self.log_watcher
        return watcher.logs() if watcher is not None else []

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def resolve(self, value: str) -> str:
        """Expand ${key} placeholders through the service's lookup cascade."""
        context = self.bound_context
        return resolve_placeholders(value, lambda key: PropertyLookup(key).get(context))

    def service_environment(self) -> dict[str, str]:
        """Declared service properties, handed to the workload as env vars."""
        return self.bound_context.owner.properties

    def _ready(self, expected_log: str) -> bool:
        watcher = self.log_watcher
        if watcher is None:
            return False
        return not expected_log or watcher.logs_contain(expected_log)

    def __repr__(self) -> str:
        service = self.context.name if self.context is not None else "unbound"
        return f"{type(self).__name__}({service}: {self.display_name})"


__all__ = ["ManagedResource"]
