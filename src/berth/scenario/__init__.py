"""Scenario identity, contexts and declarations.

The runner lives in :mod:`berth.scenario.runner` and is imported from there
(or from the top-level ``berth`` package).
"""

from berth.scenario.context import ScenarioContext, ServiceContext, generate_scenario_id
from berth.scenario.definition import ScenarioDefinition, ServiceDeclaration

__all__ = [
    "ScenarioContext",
    "ScenarioDefinition",
    "ServiceContext",
    "ServiceDeclaration",
    "generate_scenario_id",
]
