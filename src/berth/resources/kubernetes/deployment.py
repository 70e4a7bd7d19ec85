"""Deployment-backed resource for ``Container`` descriptors on kubernetes.

Lifecycle:

    .. code-block:: text

        start() first   read kubernetes.template (optional YAML file)
                        merge container name/image/command/ports/env
                        write <service folder>/kubernetes.yml
                        kubectl apply, expose every declared port once
        start() later   rebuild + kubectl apply (update in place)
        then            scale to 1, attach a CommandLogWatcher (kubectl logs)
        stop()          detach the watcher, scale to 0

The manifest merge only fills in what the test declares. Anything else in
the template (resources, probes, volumes, extra containers) is kept as is.
The first container of the pod template is the one berth manages.

Tags:
    berth, resources, kubernetes, deployment, manifest

Doc-Types:
    api-reference
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from berth.api.descriptors import Container
from berth.config.lookup import PropertyLookup
from berth.core.errors import UnsupportedEnvironmentError
from berth.core.logging import get_logger
from berth.extensions.bindings import BindingContext, ResourceBinding
from berth.resources.base import ManagedResource
from berth.resources.kubernetes.client import DEPLOYMENT_LABEL, KubectlClient
from berth.resources.logs import CommandLogWatcher, LogWatcher

logger = get_logger(__name__)

KUBERNETES_ENVIRONMENT = "kubernetes"
CLIENT_KEY = "kubernetes.client"
DEPLOYMENT_FILE = "kubernetes.yml"
DEPLOYMENT_TEMPLATE = PropertyLookup("kubernetes.template")


def load_template(path: str) -> dict[str, Any]:
    """Parse a deployment template file; blank path means no template."""
    if not path.strip():
        return {}
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    return data or {}


def build_deployment(
    template: dict[str, Any],
    *,
    name: str,
    image: str,
    command: list[str] | None = None,
    ports: tuple[int, ...] = (),
    env: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Merge the declared container into a Deployment document.

    *template* is not modified.
    """
    deployment = copy.deepcopy(template)
    deployment.setdefault("apiVersion", "apps/v1")
    deployment.setdefault("kind", "Deployment")

    metadata = deployment.get("metadata") or {}
    deployment["metadata"] = metadata
    metadata["name"] = name
    metadata["labels"] = {**(metadata.get("labels") or {}), DEPLOYMENT_LABEL: name}

    spec = deployment.get("spec") or {}
    deployment["spec"] = spec
    spec.setdefault("replicas", 0)
    selector = spec.get("selector") or {}
    spec["selector"] = selector
    selector["matchLabels"] = {**(selector.get("matchLabels") or {}), DEPLOYMENT_LABEL: name}

    pod = spec.get("template") or {}
    spec["template"] = pod
    pod_metadata = pod.get("metadata") or {}
    pod["metadata"] = pod_metadata
    pod_metadata["labels"] = {**(pod_metadata.get("labels") or {}), DEPLOYMENT_LABEL: name}

    pod_spec = pod.get("spec") or {}
    pod["spec"] = pod_spec
    containers = pod_spec.get("containers") or [{}]
    pod_spec["containers"] = containers

    container = containers[0]
    container["name"] = name
    container["image"] = image
    if command:
        container["command"] = list(command)

    declared_ports = container.get("ports") or []
    known = {p.get("containerPort") for p in declared_ports}
    for port in ports:
        if port not in known:
            declared_ports.append({"name": f"port-{port}", "containerPort": port})
    if declared_ports:
        container["ports"] = declared_ports

    if env:
        declared_env = [e for e in container.get("env") or [] if e.get("name") not in env]
        declared_env.extend({"name": key, "value": value} for key, value in env.items())
        container["env"] = declared_env

    return deployment


class KubernetesDeploymentResource(ManagedResource):
    """A one-replica Deployment in the scenario's namespace."""

    def __init__(self, descriptor: Container, *, poll_interval: float = 0.5) -> None:
        super().__init__()
        self.descriptor = descriptor
        self.poll_interval = poll_interval
        self.client: KubectlClient | None = None
        self._initialized = False
        self._running = False
        self._watcher: CommandLogWatcher | None = None

    @property
    def display_name(self) -> str:
        return self.descriptor.image

    @property
    def log_watcher(self) -> LogWatcher | None:
        return self._watcher

    @property
    def manifest_path(self) -> Path:
        return self.bound_context.service_folder / DEPLOYMENT_FILE

    def start(self) -> None:
        if self._running:
            return

        if not self._initialized:
            self._init()
            self._initialized = True
        else:
            self._apply_deployment()

        client = self._client()
        client.scale_to(self.name, 1)
        self._running = True

        self._watcher = CommandLogWatcher(self.name, lambda: client.logs(self.name), self.poll_interval)
        self._watcher.start_watching()

    def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.stop_watching()
        if self.client is not None:
            self.client.stop_service(self.name)
        self._running = False

    def get_host(self) -> str:
        return self._client().host(self.name)

    def get_mapped_port(self, port: int) -> int:
        return self._client().port(self.name, port)

    def is_running(self) -> bool:
        return self._running and self._ready(self.descriptor.expected_log)

    def _client(self) -> KubectlClient:
        if self.client is None:
            raise UnsupportedEnvironmentError(
                f"Service '{self.name}' has no kubernetes client; is the kubernetes extension active?"
            ).with_context(service=self.name, backend="kubernetes")
        return self.client

    def _init(self) -> None:
        self.client = self.bound_context.get(CLIENT_KEY)
        client = self._client()
        self._apply_deployment()
        for port in self.descriptor.ports:
            client.expose(self.name, port)

    def _apply_deployment(self) -> None:
        context = self.bound_context
        deployment = build_deployment(
            load_template(DEPLOYMENT_TEMPLATE.get(context)),
            name=self.name,
            image=self.resolve(self.descriptor.image),
            command=[self.resolve(arg) for arg in self.descriptor.command],
            ports=self.descriptor.ports,
            env=self.service_environment(),
        )
        target = self.manifest_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            yaml.dump(deployment, default_flow_style=False, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        self._client().apply(target)
        logger.info("deployment_applied", service=self.name, manifest=str(target))


class KubernetesContainerBinding(ResourceBinding):
    """``Container`` descriptors when the scenario targets kubernetes."""

    name = "kubernetes"

    def applies_for(self, context: BindingContext) -> bool:
        return (
            isinstance(context.descriptor, Container)
            and context.scenario.environment_name == KUBERNETES_ENVIRONMENT
        )

    def init(self, context: BindingContext) -> ManagedResource:
        return KubernetesDeploymentResource(
            context.descriptor,
            poll_interval=context.scenario.settings.log_poll_interval,
        )


__all__ = [
    "CLIENT_KEY",
    "DEPLOYMENT_FILE",
    "KubernetesContainerBinding",
    "KubernetesDeploymentResource",
    "build_deployment",
    "load_template",
]
