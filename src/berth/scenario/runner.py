"""Scenario runner: drives every declared service through one test run.

Manifesto:
    The host test framework calls a handful of public callbacks; the runner
    turns them into the full provisioning story. Setup is all-or-nothing and
    fails fast. Teardown is best-effort and never stops half way: every
    service gets its close attempt, every extension gets its after_all,
    and whatever went wrong is reported once at the end.

ARCHITECTURE
────────────
::

    before_all()
      ├─ ScenarioContext (id, properties file, failure flag)
      ├─ attach <log_dir>/<scenario id>.log, bind scenario_id to the log context
      ├─ registry.create_extensions(scenario) → ext.before_all
      ├─ resolve every service (register + binding + init), declaration order
      └─ per service: ext.update_service_context → ext.on_service_launch → start
         (auto-start disabled → stays RESOLVED)
      → ScenarioBundle

    before_each(test) / after_each()          per test
    on_test_success / on_test_failed / on_test_disabled / on_error

    after_all()
      ├─ close services, reverse declaration order, collect errors
      ├─ failed? keep the log file : delete it
      ├─ ext.after_all (always)
      └─ errors? raise TeardownError

    with ScenarioRunner(definition) as bundle: ...   (before_all / after_all)

BEST PRACTICES
──────────────
- Prefer the context manager; it reports body exceptions and always
  tears down.
- Pass a dedicated ``ExtensionRegistry`` in tests instead of relying on
  the process-wide default.

Related modules:
    definition.py           : what a scenario declares
    context.py              : ScenarioContext / ServiceContext
    extensions/registry.py  : binding selection and extension factories

Tags:
    berth, scenario, runner, lifecycle, orchestration, teardown

Doc-Types:
    api-reference
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import TracebackType
from typing import Any

from berth.api.service import Service
from berth.config.sources import PropertiesSource
from berth.core.errors import (
    BerthError,
    ParameterResolutionError,
    ServiceStateError,
    TeardownError,
    categorize_error,
    is_retryable,
)
from berth.core.logging import (
    LogContext,
    attach_log_file,
    bind_context,
    configure_logging,
    detach_log_file,
    get_logger,
    is_configured,
    unbind_context,
)
from berth.core.settings import BerthSettings
from berth.extensions.bindings import BindingContext
from berth.extensions.lifecycle import LifecycleExtension
from berth.extensions.registry import ExtensionRegistry, get_registry
from berth.scenario.context import ScenarioContext
from berth.scenario.definition import ScenarioDefinition

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScenarioBundle:
    """What ``before_all`` hands back: the scenario and its services."""

    scenario: ScenarioContext
    services: dict[str, Service]
    runner: ScenarioRunner = field(repr=False)

    def get(self, name: str) -> Service:
        return self.runner.lookup_service(name)

    def __getitem__(self, name: str) -> Service:
        return self.get(name)

    def parameter(self, requested_type: type, name: str = "") -> Any:
        return self.runner.resolve_parameter(name or requested_type.__name__, requested_type)


class ScenarioRunner:
    """Lifecycle orchestrator for one scenario."""

    def __init__(
        self,
        definition: ScenarioDefinition,
        settings: BerthSettings | None = None,
        registry: ExtensionRegistry | None = None,
    ) -> None:
        self.definition = definition
        self.settings = settings or BerthSettings()
        self._registry = registry
        self.scenario: ScenarioContext | None = None
        self.extensions: list[LifecycleExtension] = []
        self.services: dict[str, Service] = {}
        self._log_handler: logging.Handler | None = None
        self._finished = False

    @property
    def registry(self) -> ExtensionRegistry:
        if self._registry is None:
            self._registry = get_registry()
        return self._registry

    # ------------------------------------------------------------------
    # Scenario setup / teardown
    # ------------------------------------------------------------------

    def before_all(self) -> ScenarioBundle:
        if self.scenario is not None:
            raise ServiceStateError(f"Scenario '{self.definition.name}' was already started")
        if not is_configured():
            configure_logging(level=self.settings.log_level, json_format=self.settings.log_json)

        scenario = self._create_scenario()
        self.scenario = scenario
        self._log_handler = attach_log_file(scenario.log_file)
        bind_context(scenario_id=scenario.id)
        logger.info(
            "scenario_started",
            scenario=self.definition.name,
            environment=scenario.environment_name,
            services=self.definition.service_names,
        )

        try:
            self.extensions = self.registry.create_extensions(scenario)
            for extension in self.extensions:
                extension.before_all(scenario)

            self._resolve_services(scenario)
            for service in self.services.values():
                for extension in self.extensions:
                    extension.update_service_context(service.context)
                self._launch(service)
        except Exception as e:
            self.on_error(e)
            raise

        return ScenarioBundle(scenario, dict(self.services), self)

    def after_all(self) -> None:
        scenario = self._require_scenario()
        if self._finished:
            return
        self._finished = True

        errors: list[tuple[str, Exception]] = []
        try:
            for name, service in reversed(self.services.items()):
                try:
                    service.close()
                except Exception as e:
                    logger.error(
                        "service_close_failed",
                        service=name,
                        error=str(e),
                        error_type=type(e).__name__,
                        category=categorize_error(e).value,
                    )
                    errors.append((name, e))
            if errors:
                scenario.mark_failed()
            self._finish_log_file(scenario)
        finally:
            try:
                for extension in self.extensions:
                    extension.after_all(scenario)
            finally:
                duration = (datetime.now(UTC) - scenario.started_at).total_seconds()
                logger.info("scenario_finished", failed=scenario.failed, duration_seconds=round(duration, 3))
                unbind_context("scenario_id")

        if errors:
            raise TeardownError(errors).with_context(scenario_id=scenario.id)

    # ------------------------------------------------------------------
    # Per-test callbacks
    # ------------------------------------------------------------------

    def before_each(self, test_name: str) -> None:
        scenario = self._require_scenario()
        logger.info("test_started", test=test_name)
        scenario.current_test = test_name
        for extension in self.extensions:
            extension.before_each(scenario)
        try:
            for service in self.services.values():
                if service.auto_start and not service.is_running():
                    self._launch(service)
        except Exception as e:
            self.on_error(e)
            raise

    def after_each(self) -> None:
        scenario = self._require_scenario()
        for extension in self.extensions:
            extension.after_each(scenario)
        logger.info("test_finished", test=scenario.current_test)
        scenario.current_test = None

    def on_test_success(self) -> None:
        scenario = self._require_scenario()
        for extension in self.extensions:
            extension.on_success(scenario)

    def on_test_failed(self, error: BaseException) -> None:
        self.on_error(error)

    def on_test_disabled(self, reason: str | None = None) -> None:
        scenario = self._require_scenario()
        logger.info("test_disabled", test=scenario.current_test, reason=reason)
        for extension in self.extensions:
            extension.on_disabled(scenario, reason)

    def on_error(self, error: BaseException) -> None:
        """Record a failure on the scenario, then notify every extension."""
        scenario = self._require_scenario()
        scenario.mark_failed()
        logger.error(
            "scenario_error",
            test=scenario.current_test,
            error=str(error),
            error_type=type(error).__name__,
            category=categorize_error(error).value,
            retryable=is_retryable(error),
        )
        for extension in self.extensions:
            extension.on_error(scenario, error)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup_service(self, name: str) -> Service:
        try:
            return self.services[name]
        except KeyError:
            raise KeyError(f"No service named '{name}' in scenario '{self.definition.name}'") from None

    def resolve_parameter(self, name: str, requested_type: type) -> Any:
        """Scenario context for its own type, else the first extension that answers."""
        scenario = self._require_scenario()
        if requested_type is ScenarioContext:
            return scenario
        for extension in self.extensions:
            value = extension.get_parameter(requested_type)
            if value is not None:
                return value
        raise ParameterResolutionError(name, requested_type).with_context(scenario_id=scenario.id)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> ScenarioBundle:
        try:
            return self.before_all()
        except Exception:
            if self.scenario is not None:
                self._teardown_after_error()
            raise

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None:
            try:
                self.on_test_success()
            finally:
                self.after_all()
        else:
            self.on_error(exc)
            self._teardown_after_error()
        return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _create_scenario(self) -> ScenarioContext:
        configuration = None
        if self.definition.properties_file is not None:
            configuration = PropertiesSource.from_file(self.definition.properties_file)
        return ScenarioContext(
            self.definition.name,
            self.settings,
            environment_name=self.definition.environment,
            configuration=configuration,
        )

    def _resolve_services(self, scenario: ScenarioContext) -> None:
        for declared in self.definition.services:
            declared.service.register(declared.name, scenario)
            self.services[declared.name] = declared.service

        for declared in self.definition.services:
            context = BindingContext(declared.name, declared.descriptor, scenario)
            try:
                resource = self.registry.create_resource(context)
            except BerthError as e:
                raise e.with_context(scenario_id=scenario.id, service=declared.name)
            declared.service.init(resource)
            logger.info("service_resolved", service=declared.name, resource=repr(resource))

    def _launch(self, service: Service) -> None:
        if not service.auto_start:
            logger.info("service_auto_start_disabled", service=service.name)
            return
        scenario = self._require_scenario()
        with LogContext(service=service.name):
            for extension in self.extensions:
                extension.on_service_launch(scenario, service)
            service.start()

    def _finish_log_file(self, scenario: ScenarioContext) -> None:
        if self._log_handler is not None:
            detach_log_file(self._log_handler)
            self._log_handler = None
        if scenario.failed:
            logger.info("scenario_log_retained", path=str(scenario.log_file))
        else:
            scenario.log_file.unlink(missing_ok=True)

    def _teardown_after_error(self) -> None:
        # The setup or body exception propagates, not the teardown one
        try:
            self.after_all()
        except TeardownError as e:
            logger.error("teardown_failed", error=str(e), failures=len(e.errors))

    def _require_scenario(self) -> ScenarioContext:
        if self.scenario is None:
            raise ServiceStateError(f"Scenario '{self.definition.name}' has not been started")
        return self.scenario

    def __repr__(self) -> str:
        scenario_id = self.scenario.id if self.scenario is not None else None
        return f"ScenarioRunner({self.definition.name!r}, scenario_id={scenario_id!r})"


__all__ = ["ScenarioBundle", "ScenarioRunner"]
