"""Tests for berth.api.service: the Service handle and its state machine."""

from __future__ import annotations

import pytest

from berth.api.descriptors import Container
from berth.api.service import Service, ServiceLogs, ServiceState
from berth.core.errors import ReadinessTimeoutError, ServiceStateError

from conftest import FakeResource


def _resolved(scenario, journal, service=None, **resource_kwargs):
    service = service or Service()
    service.register("greetings", scenario)
    resource = FakeResource(Container(image="img"), journal, **resource_kwargs)
    service.init(resource)
    return service, resource


class TestDeclaration:
    """Declaration-time API."""

    def test_properties(self):
        service = Service().with_property("a", "1").with_properties({"b": "2"})
        assert service.get_property("a") == "1"
        assert service.properties == {"a": "1", "b": "2"}
        assert service.get_property("missing") is None

    def test_auto_start_default(self):
        assert Service().auto_start is True
        assert Service().with_auto_start(False).auto_start is False

    def test_unregistered_access(self):
        with pytest.raises(ServiceStateError):
            Service().context

    def test_register_twice(self, scenario):
        service = Service()
        service.register("a", scenario)
        with pytest.raises(ServiceStateError):
            service.register("b", scenario)


class TestLifecycle:
    """start / stop / restart / close."""

    def test_start_runs_hooks_and_sets_state(self, scenario, journal):
        calls: list[str] = []
        service = Service().on_pre_start(lambda s: calls.append("pre")).on_post_start(
            lambda s: calls.append("post")
        )
        service, resource = _resolved(scenario, journal, service)
        assert service.state is ServiceState.RESOLVED

        service.start()

        assert calls == ["pre", "post"]
        assert service.state is ServiceState.RUNNING
        assert service.is_running()
        assert resource.starts == 1

    def test_start_when_running_is_noop(self, scenario, journal):
        service, resource = _resolved(scenario, journal)
        service.start()
        service.start()
        assert resource.starts == 1

    def test_restart_fires_hooks_again(self, scenario, journal):
        counter = {"pre": 0, "post": 0}
        service = (
            Service()
            .on_pre_start(lambda s: counter.__setitem__("pre", counter["pre"] + 1))
            .on_post_start(lambda s: counter.__setitem__("post", counter["post"] + 1))
        )
        service, resource = _resolved(scenario, journal, service)
        service.start()
        service.restart()

        assert counter == {"pre": 2, "post": 2}
        assert resource.stops == 1
        assert resource.starts == 2
        assert service.state is ServiceState.RUNNING

    def test_stop_only_when_running(self, scenario, journal):
        service, resource = _resolved(scenario, journal)
        service.stop()
        assert resource.stops == 0
        service.start()
        service.stop()
        assert service.state is ServiceState.STOPPED
        assert not service.is_running()

    def test_closed_is_terminal(self, scenario, journal):
        service, _ = _resolved(scenario, journal)
        service.start()
        service.close()
        assert service.state is ServiceState.CLOSED
        with pytest.raises(ServiceStateError):
            service.start()

    def test_close_removes_service_folder(self, scenario, journal):
        service, _ = _resolved(scenario, journal)
        folder = service.context.service_folder
        folder.mkdir(parents=True)
        service.close()
        assert not folder.exists()

    def test_close_keeps_folder_when_disabled(self, scenario, journal):
        service, _ = _resolved(scenario, journal, Service().with_property("delete.folder.on.close", "false"))
        folder = service.context.service_folder
        folder.mkdir(parents=True)
        service.close()
        assert folder.exists()

    def test_close_sets_closed_even_when_resource_fails(self, scenario, journal):
        service, _ = _resolved(scenario, journal, fail_on_close=RuntimeError("gone"))
        with pytest.raises(RuntimeError):
            service.close()
        assert service.state is ServiceState.CLOSED


class TestReadiness:
    """The bounded readiness wait in Service.start()."""

    def test_waits_until_ready(self, scenario, journal):
        service = Service().with_property("startup.check-poll-interval", "1ms")
        service, resource = _resolved(scenario, journal, service, ready_after=3)
        service.start()
        assert service.state is ServiceState.RUNNING

    def test_timeout_stops_and_raises(self, scenario, journal):
        service = (
            Service()
            .with_property("startup.timeout", "50ms")
            .with_property("startup.check-poll-interval", "5ms")
        )
        service, resource = _resolved(scenario, journal, service, ready_after=10_000)

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            service.start()

        assert exc_info.value.service == "greetings"
        assert resource.stops == 1
        assert service.state is ServiceState.RESOLVED


class TestAccessors:
    """Addressing and logs."""

    def test_host_and_port(self, scenario, journal):
        service, _ = _resolved(scenario, journal)
        assert service.get_host() == "fake-host"
        assert service.get_mapped_port(8080) == 18080

    def test_logs(self, scenario, journal):
        service, _ = _resolved(scenario, journal)
        service.start()
        logs = service.logs()
        assert isinstance(logs, ServiceLogs)
        logs.assert_contains("started #1")
        logs.assert_does_not_contain("started #2")
        assert len(logs) == 1

    def test_logs_assertion_message(self):
        logs = ServiceLogs("db", ["a", "b"])
        with pytest.raises(AssertionError, match="does not contain 'c'"):
            logs.assert_contains("c")
        with pytest.raises(AssertionError, match="contains 'b'"):
            logs.assert_does_not_contain("a-missing", "b")

    def test_lookup_and_scenario_id(self, scenario, journal):
        service, _ = _resolved(scenario, journal, Service().with_property("my.property", "custom"))
        assert service.lookup("my.property") == "custom"
        assert service.lookup("unset.property", "fallback") == "fallback"
        assert service.scenario_id == scenario.id
