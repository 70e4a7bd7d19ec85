"""Tests for berth.extensions: binding selection, extension factories, discovery."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from berth.api.descriptors import Container, Process
from berth.core.errors import (
    BackendInitializationError,
    RegistryError,
    UnsupportedBackendError,
    UnsupportedEnvironmentError,
)
from berth.extensions.bindings import BindingContext
from berth.extensions.lifecycle import LifecycleExtension
from berth.extensions.registry import (
    BINDINGS_GROUP,
    EXTENSIONS_GROUP,
    ExtensionRegistry,
    get_registry,
    reset_registry,
)

from conftest import FakeBinding, FakeResource, RecordingExtension


def _context(scenario, descriptor=None, service="greetings"):
    return BindingContext(service, descriptor or Container(image="img"), scenario)


class TestRegistration:
    """Registration API and freezing."""

    def test_order_preserved(self):
        registry = ExtensionRegistry()
        registry.register_binding(FakeBinding("one"))
        registry.register_binding(FakeBinding("two"))
        assert registry.binding_names == ["one", "two"]

    def test_duplicate_binding_name(self):
        registry = ExtensionRegistry()
        registry.register_binding(FakeBinding("one"))
        with pytest.raises(RegistryError):
            registry.register_binding(FakeBinding("one"))

    def test_not_a_binding(self):
        with pytest.raises(RegistryError):
            ExtensionRegistry().register_binding(object())

    def test_extension_name_from_class(self):
        registry = ExtensionRegistry()
        registry.register_extension(RecordingExtension)
        assert registry.extension_names == ["recording"]

    def test_frozen_rejects_registration(self):
        registry = ExtensionRegistry()
        registry.freeze()
        with pytest.raises(RegistryError):
            registry.register_binding(FakeBinding())
        with pytest.raises(RegistryError):
            registry.register_extension(RecordingExtension)

    def test_clear(self):
        registry = ExtensionRegistry()
        registry.register_binding(FakeBinding())
        registry.freeze()
        registry.clear()
        assert registry.binding_names == []
        assert not registry.frozen


class TestResolution:
    """First matching binding wins; none matching is an error."""

    def test_second_binding_selected_when_only_it_matches(self, scenario):
        registry = ExtensionRegistry()
        registry.register_binding(FakeBinding("never", predicate=lambda c: False))
        second = registry.register_binding(FakeBinding("always"))
        assert registry.resolve(_context(scenario)) is second

    def test_first_registered_wins_ties(self, scenario):
        registry = ExtensionRegistry()
        first = registry.register_binding(FakeBinding("a"))
        registry.register_binding(FakeBinding("b"))
        assert registry.resolve(_context(scenario)) is first

    def test_no_match(self, scenario):
        registry = ExtensionRegistry()
        registry.register_binding(FakeBinding("containers", predicate=lambda c: isinstance(c.descriptor, Container)))
        with pytest.raises(UnsupportedBackendError) as exc_info:
            registry.resolve(_context(scenario, Process(command=("run",))))
        assert exc_info.value.available == ["containers"]
        assert exc_info.value.context.scenario_id == scenario.id

    def test_create_resource(self, scenario):
        registry = ExtensionRegistry()
        registry.register_binding(FakeBinding())
        assert isinstance(registry.create_resource(_context(scenario)), FakeResource)

    def test_init_failure_wrapped(self, scenario):
        binding = FakeBinding("broken")
        binding.init = MagicMock(side_effect=RuntimeError("image pull failed"))
        registry = ExtensionRegistry()
        registry.register_binding(binding)

        with pytest.raises(BackendInitializationError) as exc_info:
            registry.create_resource(_context(scenario))
        assert exc_info.value.binding == "broken"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_berth_errors_propagate_unwrapped(self, scenario):
        binding = FakeBinding("no-cluster")
        binding.init = MagicMock(side_effect=UnsupportedEnvironmentError("no cluster"))
        registry = ExtensionRegistry()
        registry.register_binding(binding)

        with pytest.raises(UnsupportedEnvironmentError):
            registry.create_resource(_context(scenario))


class TestExtensions:
    """Per-scenario extension instantiation."""

    def test_fresh_instances_filtered(self, scenario, recording_extension):
        class NotForMe(LifecycleExtension):
            name = "not-for-me"

            def applies_for(self, scenario):
                return False

        registry = ExtensionRegistry()
        registry.register_extension(recording_extension)
        registry.register_extension(NotForMe)

        first = registry.create_extensions(scenario)
        second = registry.create_extensions(scenario)

        assert [type(e) for e in first] == [recording_extension]
        assert first[0] is not second[0]

    def test_base_hooks_are_noops(self, scenario):
        extension = LifecycleExtension()
        assert extension.applies_for(scenario)
        assert extension.get_parameter(str) is None
        extension.before_all(scenario)
        extension.on_error(scenario, RuntimeError())
        assert extension.extension_name == "LifecycleExtension"


class TestDiscovery:
    """Entry-point discovery."""

    def _entry_point(self, name, loaded):
        ep = MagicMock()
        ep.name = name
        ep.value = f"pkg:{name}"
        ep.load.return_value = loaded
        return ep

    def test_discover_loads_groups_sorted_and_freezes(self):
        groups = {
            BINDINGS_GROUP: [
                self._entry_point("zeta", FakeBinding("zeta")),
                self._entry_point("alpha", FakeBinding("alpha")),
            ],
            EXTENSIONS_GROUP: [self._entry_point("recording", RecordingExtension)],
        }
        registry = ExtensionRegistry()
        with patch("berth.extensions.registry.entry_points", side_effect=lambda group: groups[group]):
            registry.discover()

        assert registry.binding_names == ["alpha", "zeta"]
        assert registry.extension_names == ["recording"]
        assert registry.frozen

    def test_binding_class_is_instantiated(self):
        class Discovered(FakeBinding):
            pass

        groups = {BINDINGS_GROUP: [self._entry_point("discovered", Discovered)], EXTENSIONS_GROUP: []}
        registry = ExtensionRegistry()
        with patch("berth.extensions.registry.entry_points", side_effect=lambda group: groups[group]):
            registry.discover()
        assert isinstance(registry.bindings[0], Discovered)

    def test_broken_entry_point(self):
        ep = self._entry_point("broken", None)
        ep.load.side_effect = ImportError("no module")
        registry = ExtensionRegistry()
        with patch("berth.extensions.registry.entry_points", side_effect=lambda group: [ep]):
            with pytest.raises(RegistryError, match="broken"):
                registry.discover()

    def test_extension_entry_point_must_be_extension(self):
        groups = {BINDINGS_GROUP: [], EXTENSIONS_GROUP: [self._entry_point("bad", dict)]}
        with patch("berth.extensions.registry.entry_points", side_effect=lambda group: groups[group]):
            with pytest.raises(RegistryError):
                ExtensionRegistry().discover()


class TestDefaultRegistry:
    """get_registry(): built-ins plus discovery."""

    def test_builtins_registered_and_frozen(self):
        with patch("berth.extensions.registry.entry_points", return_value=[]):
            registry = get_registry()
        assert registry.binding_names == ["local-process", "kubernetes", "docker"]
        assert registry.extension_names == ["kubernetes"]
        assert registry.frozen
        assert get_registry() is registry

    def test_reset(self):
        with patch("berth.extensions.registry.entry_points", return_value=[]):
            first = get_registry()
            reset_registry()
            assert get_registry() is not first
