"""Tests for berth.api.descriptors."""

from __future__ import annotations

import dataclasses

import pytest

from berth.api.descriptors import Container, Process


class TestContainer:
    """Tests for the Container descriptor."""

    def test_fields_normalized(self):
        container = Container(image="nginx", ports=[80, "443"], command=["nginx", "-g", "daemon off;"])
        assert container.ports == (80, 443)
        assert container.command == ("nginx", "-g", "daemon off;")
        assert container.kind == "container"

    def test_image_required(self):
        with pytest.raises(ValueError):
            Container()

    def test_frozen(self):
        container = Container(image="nginx")
        with pytest.raises(dataclasses.FrozenInstanceError):
            container.image = "other"

    def test_describe(self):
        assert Container(image="nginx").describe() == "Container(image='nginx')"


class TestProcess:
    """Tests for the Process descriptor."""

    def test_command_required(self):
        with pytest.raises(ValueError):
            Process()

    def test_defaults(self):
        process = Process(command=("python", "-m", "http.server"))
        assert process.ports == ()
        assert process.expected_log == ""
        assert process.env == {}
        assert "http.server" in process.describe()
