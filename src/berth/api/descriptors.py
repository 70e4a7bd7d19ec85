"""Declared resource descriptors.

A descriptor states *what* a service needs (an image, a command, the ports
it listens on, the log line that proves it is ready) without saying *which*
backend provides it. Bindings in :mod:`berth.extensions.bindings` inspect
the descriptor to decide whether they apply.

Descriptors are frozen dataclasses: they are declared once next to the test
and never mutated. String fields may contain ``${key}`` / ``${key:default}``
placeholders; backends resolve them when the resource is constructed.

Example::

    greetings = Container(
        image="quay.io/samples/rest:${rest.version:1.0}",
        ports=(8080,),
        expected_log="Installed features",
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True, kw_only=True)
class ResourceDescriptor:
    """Base for every declared resource."""

    kind: ClassVar[str] = "resource"

    ports: tuple[int, ...] = ()
    """Ports the resource listens on."""

    expected_log: str = ""
    """Substring whose appearance in the output marks the resource as ready."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "ports", tuple(int(p) for p in self.ports))

    def describe(self) -> str:
        return f"{type(self).__name__}({self.kind})"


@dataclass(frozen=True, kw_only=True)
class Container(ResourceDescriptor):
    """A container image, run by a container engine or a cluster."""

    kind: ClassVar[str] = "container"

    image: str = ""
    command: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.image:
            raise ValueError("Container descriptor requires an image")
        object.__setattr__(self, "command", tuple(self.command))

    def describe(self) -> str:
        return f"Container(image={self.image!r})"


@dataclass(frozen=True, kw_only=True)
class Process(ResourceDescriptor):
    """A local command run as a subprocess of the controlling process."""

    kind: ClassVar[str] = "process"

    command: tuple[str, ...] = ()
    working_dir: str | None = None
    env: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.command:
            raise ValueError("Process descriptor requires a command")
        object.__setattr__(self, "command", tuple(self.command))

    def describe(self) -> str:
        return f"Process(command={' '.join(self.command)!r})"


__all__ = ["Container", "Process", "ResourceDescriptor"]
