"""
Shared pytest fixtures for berth tests.

This module provides:
- Settings rooted in a per-test temporary directory
- A scripted in-memory ``ManagedResource`` and the binding that builds it
- A lifecycle extension that records every hook it receives
- A private ``ExtensionRegistry`` per test (the default one is reset)

No Docker, kubectl or network access is needed by anything here.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

# Ensure berth package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from berth.api.descriptors import Container, ResourceDescriptor
from berth.api.service import Service
from berth.core.logging import configure_logging
from berth.core.settings import BerthSettings
from berth.extensions.bindings import BindingContext, ResourceBinding
from berth.extensions.lifecycle import LifecycleExtension
from berth.extensions.registry import ExtensionRegistry, reset_registry
from berth.resources.base import ManagedResource
from berth.scenario.context import ScenarioContext, ServiceContext


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def structured_logging() -> None:
    """Configure structlog once so runners do not reconfigure it per test."""
    configure_logging(level="DEBUG", json_format=True)


@pytest.fixture(autouse=True)
def clean_default_registry() -> Generator[None, None, None]:
    reset_registry()
    yield
    reset_registry()


# =============================================================================
# Fake backend
# =============================================================================


class FakeResource(ManagedResource):
    """Scripted resource that records what the lifecycle did to it.

    Args:
        journal: Shared list receiving ``"<event>:<service>"`` entries.
        ready_after: Number of ``is_running()`` polls answering False after
            each start before the resource reports ready.
        fail_on_start / fail_on_close: Exceptions to raise from those calls.
    """

    def __init__(
        self,
        descriptor: ResourceDescriptor,
        journal: list[str],
        *,
        ready_after: int = 0,
        fail_on_start: Exception | None = None,
        fail_on_close: Exception | None = None,
    ) -> None:
        super().__init__()
        self.descriptor = descriptor
        self.journal = journal
        self.ready_after = ready_after
        self.fail_on_start = fail_on_start
        self.fail_on_close = fail_on_close
        self.running = False
        self.starts = 0
        self.stops = 0
        self._polls = 0
        self.lines: list[str] = []

    @property
    def display_name(self) -> str:
        return f"fake:{self.descriptor.describe()}"

    def start(self) -> None:
        self.journal.append(f"start:{self.name}")
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.starts += 1
        self.running = True
        self._polls = 0
        self.lines.append(f"started #{self.starts}")

    def stop(self) -> None:
        self.journal.append(f"stop:{self.name}")
        self.stops += 1
        self.running = False

    def close(self) -> None:
        self.journal.append(f"close:{self.name}")
        if self.fail_on_close is not None:
            raise self.fail_on_close
        self.running = False

    def get_host(self) -> str:
        return "fake-host"

    def get_mapped_port(self, port: int) -> int:
        return port + 10000

    def is_running(self) -> bool:
        if not self.running:
            return False
        self._polls += 1
        return self._polls > self.ready_after

    def logs(self) -> list[str]:
        return list(self.lines)


class FakeBinding(ResourceBinding):
    """Binds every descriptor accepted by *predicate* to a FakeResource."""

    def __init__(
        self,
        name: str = "fake",
        predicate: Callable[[BindingContext], bool] | None = None,
        journal: list[str] | None = None,
        **resource_kwargs: Any,
    ) -> None:
        self.name = name
        self.predicate = predicate or (lambda context: True)
        self.journal = journal if journal is not None else []
        self.resource_kwargs = resource_kwargs
        self.resources: dict[str, FakeResource] = {}

    def applies_for(self, context: BindingContext) -> bool:
        return self.predicate(context)

    def init(self, context: BindingContext) -> ManagedResource:
        self.journal.append(f"init:{context.service}:{self.name}")
        kwargs = self.resource_kwargs.get(context.service, {})
        resource = FakeResource(context.descriptor, self.journal, **kwargs)
        self.resources[context.service] = resource
        return resource


class RecordingExtension(LifecycleExtension):
    """Extension that appends every hook call to a class-level journal."""

    name = "recording"
    journal: list[str] = []
    parameter: Any = None

    def before_all(self, scenario: ScenarioContext) -> None:
        self.journal.append("before_all")

    def after_all(self, scenario: ScenarioContext) -> None:
        self.journal.append("after_all")

    def before_each(self, scenario: ScenarioContext) -> None:
        self.journal.append(f"before_each:{scenario.current_test}")

    def after_each(self, scenario: ScenarioContext) -> None:
        self.journal.append("after_each")

    def update_service_context(self, context: ServiceContext) -> None:
        self.journal.append(f"update_service_context:{context.name}")

    def on_service_launch(self, scenario: ScenarioContext, service: Service) -> None:
        self.journal.append(f"on_service_launch:{service.name}")

    def on_error(self, scenario: ScenarioContext, error: BaseException) -> None:
        self.journal.append(f"on_error:{type(error).__name__}:failed={scenario.failed}")

    def on_success(self, scenario: ScenarioContext) -> None:
        self.journal.append("on_success")

    def on_disabled(self, scenario: ScenarioContext, reason: str | None) -> None:
        self.journal.append(f"on_disabled:{reason}")

    def get_parameter(self, requested_type: type) -> Any | None:
        if self.parameter is not None and isinstance(self.parameter, requested_type):
            return self.parameter
        return None


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path: Path) -> BerthSettings:
    """Settings writing every artifact under the test's tmp_path."""
    return BerthSettings(
        output_dir=tmp_path / "out",
        properties_file=tmp_path / "berth.properties",
        environment="local",
        log_poll_interval=0.01,
    )


@pytest.fixture
def journal() -> list[str]:
    return []


@pytest.fixture
def fake_binding(journal: list[str]) -> FakeBinding:
    return FakeBinding(journal=journal)


@pytest.fixture
def registry(fake_binding: FakeBinding) -> ExtensionRegistry:
    registry = ExtensionRegistry()
    registry.register_binding(fake_binding)
    return registry


@pytest.fixture
def recording_extension() -> Generator[type[RecordingExtension], None, None]:
    RecordingExtension.journal = []
    RecordingExtension.parameter = None
    yield RecordingExtension
    RecordingExtension.journal = []
    RecordingExtension.parameter = None


@pytest.fixture
def scenario(settings: BerthSettings) -> ScenarioContext:
    return ScenarioContext("unit scenario", settings)


@pytest.fixture
def service_context(scenario: ScenarioContext) -> ServiceContext:
    """A registered service named ``greetings``."""
    return Service().register("greetings", scenario)


@pytest.fixture
def container() -> Container:
    return Container(image="quay.io/samples/rest:1.0", ports=(8080,), expected_log="Installed features")
