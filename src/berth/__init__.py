"""
berth: managed backing services for test scenarios.

Declare the services a scenario needs, let the extension registry pick a
backend for each one, and drive them through a single lifecycle::

    from berth import Container, Process, ScenarioDefinition, ScenarioRunner, Service

    definition = (
        ScenarioDefinition("greetings")
        .with_service("db", Container(image="postgres:16", ports=(5432,),
                                      expected_log="ready to accept connections"))
        .with_service("app", Process(command=("./run.sh",), expected_log="Started"),
                      Service().with_property("db.port", "5432"))
    )

    with ScenarioRunner(definition) as bundle:
        app = bundle["app"]
        app.logs().assert_contains("Started")

Packages:
    core        errors, structured logging, process settings
    config      properties files, environment, cascading lookup
    api         resource descriptors and the Service handle
    extensions  resource bindings, lifecycle extensions, registry
    resources   the managed-resource contract and the shipped backends
    scenario    scenario/service contexts, definitions, the runner
"""

from berth.api import Container, Process, ResourceDescriptor, Service, ServiceLogs, ServiceState
from berth.config import EnvironmentSource, PropertiesSource, PropertyLookup
from berth.core import BerthError, BerthSettings
from berth.extensions import (
    BindingContext,
    ExtensionRegistry,
    LifecycleExtension,
    ResourceBinding,
    get_registry,
)
from berth.resources import ManagedResource
from berth.scenario import ScenarioContext, ScenarioDefinition, ServiceContext
from berth.scenario.runner import ScenarioBundle, ScenarioRunner

__version__ = "0.1.0"

__all__ = [
    "BerthError",
    "BerthSettings",
    "BindingContext",
    "Container",
    "EnvironmentSource",
    "ExtensionRegistry",
    "LifecycleExtension",
    "ManagedResource",
    "Process",
    "PropertiesSource",
    "PropertyLookup",
    "ResourceBinding",
    "ResourceDescriptor",
    "ScenarioBundle",
    "ScenarioContext",
    "ScenarioDefinition",
    "ScenarioRunner",
    "Service",
    "ServiceContext",
    "ServiceLogs",
    "ServiceState",
    "get_registry",
]
