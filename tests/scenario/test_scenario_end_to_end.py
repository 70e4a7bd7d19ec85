"""End-to-end scenario with the built-in registry and a real local process."""

from __future__ import annotations

import sys

import pytest

from berth.api.descriptors import Process
from berth.api.service import Service, ServiceState
from berth.extensions.registry import ExtensionRegistry
from berth.scenario.definition import ScenarioDefinition
from berth.scenario.runner import ScenarioRunner

SERVER = (
    "import os, time\n"
    "print('booting', flush=True)\n"
    "time.sleep(0.2)\n"
    "print('greeting=' + os.environ.get('greeting', '?'), flush=True)\n"
    "print('Installed features: [rest]', flush=True)\n"
    "time.sleep(60)\n"
)


@pytest.mark.integration
class TestLocalProcessScenario:
    """Greetings service started, restarted and torn down as a subprocess."""

    def test_lifecycle(self, settings):
        counter = {"pre": 0}
        greetings = (
            Service()
            .with_property("greeting", "hola")
            .with_property("startup.timeout", "20s")
            .with_property("startup.check-poll-interval", "20ms")
            .on_pre_start(lambda service: counter.__setitem__("pre", counter["pre"] + 1))
        )
        definition = ScenarioDefinition("local greetings").with_service(
            "greetings",
            Process(command=(sys.executable, "-c", SERVER), expected_log="Installed features"),
            greetings,
        )
        registry = ExtensionRegistry().register_builtins()

        with ScenarioRunner(definition, settings, registry) as bundle:
            service = bundle["greetings"]
            assert service.is_running()
            assert service.get_host() == "localhost"
            service.logs().assert_contains("booting", "greeting=hola")

            service.restart()
            assert service.is_running()
            assert counter["pre"] == 2

        assert greetings.state is ServiceState.CLOSED
        assert not greetings.is_running()
