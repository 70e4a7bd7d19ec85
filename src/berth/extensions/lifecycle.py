"""Lifecycle extensions: observers and mutators of scenario setup/teardown.

An extension is instantiated once per scenario. If its ``applies_for``
returns true it receives every lifecycle callback of that scenario, in
registration order relative to the other extensions. Every hook is a no-op
by default; override only what you need.

Hook order for a scenario::

    before_all
      update_service_context   (per service, declaration order)
      on_service_launch        (per auto-started service, before start)
    before_each / after_each   (per test)
    on_success | on_error | on_disabled
    after_all                  (after every service was closed)

A hook that raises is not isolated: the exception propagates to whoever
drives the scenario, like any other failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from berth.core.logging import get_logger

if TYPE_CHECKING:
    from berth.api.service import Service
    from berth.scenario.context import ScenarioContext, ServiceContext


class LifecycleExtension:
    """Base class for lifecycle extensions."""

    name: str = ""

    def __init__(self) -> None:
        self._logger = get_logger(f"berth.extensions.{self.name or type(self).__name__}")

    def applies_for(self, scenario: ScenarioContext) -> bool:
        return True

    def before_all(self, scenario: ScenarioContext) -> None:
        pass

    def after_all(self, scenario: ScenarioContext) -> None:
        pass

    def before_each(self, scenario: ScenarioContext) -> None:
        pass

    def after_each(self, scenario: ScenarioContext) -> None:
        pass

    def update_service_context(self, context: ServiceContext) -> None:
        pass

    def on_service_launch(self, scenario: ScenarioContext, service: Service) -> None:
        pass

    def on_error(self, scenario: ScenarioContext, error: BaseException) -> None:
        pass

    def on_success(self, scenario: ScenarioContext) -> None:
        pass

    def on_disabled(self, scenario: ScenarioContext, reason: str | None) -> None:
        pass

    def get_parameter(self, requested_type: type) -> Any | None:
        """Value to inject for *requested_type*, or None if not provided."""
        return None

    @property
    def extension_name(self) -> str:
        return self.name or type(self).__name__

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.extension_name})"


__all__ = ["LifecycleExtension"]
