"""The service object a scenario declares and its tests talk to.

A ``Service`` is declared with static properties and start hooks, then
resolved by the scenario runner to a managed resource. From that point on
it is the caller-facing handle: start, stop, restart, address lookup, logs.

States:

    .. code-block:: text

        DECLARED ──init(resource)──► RESOLVED ──start()──► RUNNING
                                                      ▲        │
                                                start()│        │stop()
                                                      │        ▼
                                                      STOPPED
        any state ──close()──► CLOSED (terminal)

``start()`` is the place where a bounded readiness wait happens: the
resource's ``is_running()`` is polled until it turns true or the configured
``startup.timeout`` passes, in which case the resource is stopped again and
:class:`~berth.core.errors.ReadinessTimeoutError` is raised.

Example::

    greetings = (
        Service()
        .with_property("my.property", "custom")
        .on_pre_start(lambda s: counter.increment())
    )
"""

from __future__ import annotations

import shutil
import time
from collections.abc import Callable, Iterator, Mapping
from enum import Enum
from typing import TYPE_CHECKING

from berth.config.lookup import PropertyLookup
from berth.core.errors import ReadinessTimeoutError, ServiceStateError
from berth.core.logging import get_logger
from berth.scenario.context import ServiceContext

if TYPE_CHECKING:
    from berth.resources.base import ManagedResource
    from berth.scenario.context import ScenarioContext

logger = get_logger(__name__)

STARTUP_TIMEOUT = PropertyLookup("startup.timeout", "5m")
STARTUP_POLL_INTERVAL = PropertyLookup("startup.check-poll-interval", "1s")
DELETE_FOLDER_ON_CLOSE = PropertyLookup("delete.folder.on.close", "true")

ServiceAction = Callable[["Service"], None]


class ServiceState(str, Enum):
    """Lifecycle state of a declared service."""

    DECLARED = "declared"
    RESOLVED = "resolved"
    RUNNING = "running"
    STOPPED = "stopped"
    CLOSED = "closed"


class ServiceLogs:
    """Snapshot of a service's output with small assertion helpers."""

    def __init__(self, service_name: str, lines: list[str]) -> None:
        self.service_name = service_name
        self.lines = lines

    def contains(self, text: str) -> bool:
        return any(text in line for line in self.lines)

    def assert_contains(self, *texts: str) -> None:
        for text in texts:
            if not self.contains(text):
                raise AssertionError(f"Log of '{self.service_name}' does not contain {text!r}")

    def assert_does_not_contain(self, *texts: str) -> None:
        for text in texts:
            if self.contains(text):
                raise AssertionError(f"Log of '{self.service_name}' contains {text!r}")

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)


class Service:
    """A declared, restartable service backed by a managed resource."""

    def __init__(self) -> None:
        self._properties: dict[str, str] = {}
        self._pre_start: list[ServiceAction] = []
        self._post_start: list[ServiceAction] = []
        self._auto_start = True
        self._context: ServiceContext | None = None
        self._resource: ManagedResource | None = None
        self.state = ServiceState.DECLARED

    # ------------------------------------------------------------------
    # Declaration
    # ------------------------------------------------------------------

    def with_property(self, key: str, value: str) -> Service:
        self._properties[key] = value
        return self

    def with_properties(self, properties: Mapping[str, str]) -> Service:
        self._properties.update(properties)
        return self

    def with_auto_start(self, enabled: bool) -> Service:
        self._auto_start = enabled
        return self

    def on_pre_start(self, action: ServiceAction) -> Service:
        self._pre_start.append(action)
        return self

    def on_post_start(self, action: ServiceAction) -> Service:
        self._post_start.append(action)
        return self

    @property
    def auto_start(self) -> bool:
        return self._auto_start

    @property
    def properties(self) -> dict[str, str]:
        return dict(self._properties)

    def get_property(self, key: str) -> str | None:
        return self._properties.get(key)

    # ------------------------------------------------------------------
    # Resolution (driven by the scenario runner)
    # ------------------------------------------------------------------

    def register(self, name: str, scenario: ScenarioContext) -> ServiceContext:
        if self.state is not ServiceState.DECLARED:
            raise ServiceStateError(f"Service '{name}' is already registered ({self.state.value})")
        self._context = ServiceContext(name, scenario, self)
        return self._context

    def init(self, resource: ManagedResource) -> None:
        resource.bind(self.context)
        self._resource = resource
        self.state = ServiceState.RESOLVED

    @property
    def context(self) -> ServiceContext:
        if self._context is None:
            raise ServiceStateError("Service has not been registered in a scenario")
        return self._context

    @property
    def resource(self) -> ManagedResource:
        if self._resource is None:
            raise ServiceStateError(f"Service '{self.name}' has no managed resource yet")
        return self._resource

    @property
    def name(self) -> str:
        return self.context.name

    @property
    def scenario_id(self) -> str:
        return self.context.scenario_id

    @property
    def display_name(self) -> str:
        return self.resource.display_name

    def lookup(self, key: str, default: str = "") -> str:
        """Resolve *key* through the configuration cascade for this service."""
        return PropertyLookup(key, default).get(self.context)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        resource = self.resource
        if self.state is ServiceState.CLOSED:
            raise ServiceStateError(f"Service '{self.name}' is closed and cannot be started")
        if self.state is ServiceState.RUNNING and resource.is_running():
            return

        logger.info("service_starting", service=self.name, resource=resource.display_name)
        for action in self._pre_start:
            action(self)

        resource.start()
        self._wait_until_ready(resource)
        self.state = ServiceState.RUNNING
        logger.info("service_started", service=self.name)

        for action in self._post_start:
            action(self)

    def stop(self) -> None:
        if self.state is not ServiceState.RUNNING:
            return
        logger.info("service_stopping", service=self.name)
        self.resource.stop()
        self.state = ServiceState.STOPPED

    def restart(self) -> None:
        self.stop()
        self.start()

    def close(self) -> None:
        """Stop and release the resource. Terminal."""
        if self.state is ServiceState.CLOSED:
            return
        try:
            if self._resource is not None:
                self._resource.close()
        finally:
            self.state = ServiceState.CLOSED
            if self._context is not None:
                if DELETE_FOLDER_ON_CLOSE.get_as_boolean(self._context):
                    shutil.rmtree(self._context.service_folder, ignore_errors=True)
                logger.info("service_closed", service=self._context.name)

    def is_running(self) -> bool:
        return self._resource is not None and self._resource.is_running()

    def get_host(self) -> str:
        return self.resource.get_host()

    def get_mapped_port(self, port: int) -> int:
        return self.resource.get_mapped_port(port)

    def logs(self) -> ServiceLogs:
        return ServiceLogs(self.name, self.resource.logs())

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _wait_until_ready(self, resource: ManagedResource) -> None:
        timeout = STARTUP_TIMEOUT.get_as_duration(self.context)
        interval = STARTUP_POLL_INTERVAL.get_as_duration(self.context)
        deadline = time.monotonic() + timeout

        while not resource.is_running():
            if time.monotonic() >= deadline:
                logger.error("service_not_ready", service=self.name, timeout=timeout)
                try:
                    resource.stop()
                except Exception as e:
                    logger.warning("service_unwind_failed", service=self.name, error=str(e))
                raise ReadinessTimeoutError(self.name, timeout)
            time.sleep(interval)

    def __repr__(self) -> str:
        name = self._context.name if self._context is not None else "<unregistered>"
        return f"Service({name}, state={self.state.value})"


__all__ = ["Service", "ServiceLogs", "ServiceState"]
