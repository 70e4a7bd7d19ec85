"""Pluggable resource bindings and lifecycle extensions."""

from berth.extensions.bindings import BindingContext, ResourceBinding
from berth.extensions.lifecycle import LifecycleExtension
from berth.extensions.registry import (
    BINDINGS_GROUP,
    EXTENSIONS_GROUP,
    ExtensionRegistry,
    get_registry,
    reset_registry,
)

__all__ = [
    "BINDINGS_GROUP",
    "EXTENSIONS_GROUP",
    "BindingContext",
    "ExtensionRegistry",
    "LifecycleExtension",
    "ResourceBinding",
    "get_registry",
    "reset_registry",
]
