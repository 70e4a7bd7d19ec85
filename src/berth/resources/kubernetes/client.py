"""Namespace-scoped ``kubectl`` wrapper.

Every command runs with ``-n <namespace>``; one client per scenario, the
namespace being named after the scenario id.

Exposure convention:

    .. code-block:: text

        deployment <service>  ──expose port P──►  service <service>-<P> (NodePort)
        get_host(service)     → hostIP of the service's pod
        port(service, P)      → .spec.ports[0].nodePort of <service>-<P>
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from berth.core.errors import UnsupportedEnvironmentError
from berth.core.logging import get_logger
from berth.resources._command import find_executable, run_command

logger = get_logger(__name__)

DEPLOYMENT_LABEL = "deployment"


class KubectlClient:
    """Thin CLI client for one namespace."""

    def __init__(self, namespace: str, kubectl_path: str = "kubectl") -> None:
        self.namespace = namespace
        self.kubectl_cmd = find_executable(kubectl_path, "kubernetes")

    def _run(self, args: list[str], check: bool = True, timeout: float = 120) -> subprocess.CompletedProcess[str]:
        return run_command(
            [self.kubectl_cmd, *args, "-n", self.namespace],
            backend="kubernetes",
            check=check,
            timeout=timeout,
        )

    # ── Namespace ────────────────────────────────────────────────

    def create_namespace(self) -> None:
        run_command([self.kubectl_cmd, "create", "namespace", self.namespace], backend="kubernetes")
        logger.info("namespace_created", namespace=self.namespace)

    def delete_namespace(self) -> None:
        run_command(
            [self.kubectl_cmd, "delete", "namespace", self.namespace, "--ignore-not-found", "--wait=false"],
            backend="kubernetes",
        )
        logger.info("namespace_deleted", namespace=self.namespace)

    # ── Workloads ────────────────────────────────────────────────

    def apply(self, manifest: Path) -> None:
        self._run(["apply", "-f", str(manifest)])

    def scale_to(self, name: str, replicas: int) -> None:
        self._run(["scale", f"deployment/{name}", f"--replicas={replicas}"])
        logger.debug("deployment_scaled", deployment=name, replicas=replicas)

    def stop_service(self, name: str) -> None:
        self.scale_to(name, 0)

    def logs(self, name: str) -> str:
        result = self._run(["logs", f"deployment/{name}"], check=False)
        return result.stdout

    # ── Exposure ─────────────────────────────────────────────────

    @staticmethod
    def exposed_service_name(name: str, port: int) -> str:
        return f"{name}-{port}"

    def expose(self, name: str, port: int) -> None:
        """Expose a deployment port as a NodePort service, once."""
        service = self.exposed_service_name(name, port)
        if self._run(["get", "service", service], check=False).returncode == 0:
            logger.debug("service_already_exposed", service=service)
            return
        self._run([
            "expose", f"deployment/{name}",
            f"--name={service}",
            f"--port={port}",
            f"--target-port={port}",
            "--type=NodePort",
        ])
        logger.info("service_exposed", deployment=name, port=port, service=service)

    def host(self, name: str) -> str:
        result = self._run(
            ["get", "pods", "-l", f"{DEPLOYMENT_LABEL}={name}", "-o", "jsonpath={.items[0].status.hostIP}"],
            check=False,
        )
        host = result.stdout.strip()
        if result.returncode != 0 or not host:
            raise UnsupportedEnvironmentError(
                f"No running instance of '{name}' found in namespace '{self.namespace}'"
            ).with_context(service=name, backend="kubernetes")
        return host

    def port(self, name: str, port: int) -> int:
        service = self.exposed_service_name(name, port)
        result = self._run(
            ["get", "service", service, "-o", "jsonpath={.spec.ports[0].nodePort}"],
            check=False,
        )
        node_port = result.stdout.strip()
        if result.returncode != 0 or not node_port:
            raise UnsupportedEnvironmentError(
                f"Port {port} of '{name}' is not exposed in namespace '{self.namespace}'"
            ).with_context(service=name, backend="kubernetes")
        return int(node_port)

    def __repr__(self) -> str:
        return f"KubectlClient(namespace={self.namespace!r})"


__all__ = ["DEPLOYMENT_LABEL", "KubectlClient"]
