"""Layered configuration: properties files, environment, and the lookup cascade."""

from berth.config.lookup import PropertyLookup, resolve_placeholders
from berth.config.sources import EnvironmentSource, PropertiesSource, parse_properties

__all__ = [
    "EnvironmentSource",
    "PropertiesSource",
    "PropertyLookup",
    "parse_properties",
    "resolve_placeholders",
]
