"""Container engine backend: runs a ``Container`` descriptor with the docker CLI.

Manages one container per declared service via the ``docker`` CLI
(subprocess), the same way ephemeral testbed containers are driven
elsewhere: no SDK, no daemon socket handling, just commands.

Architecture:

    .. code-block:: text

        first start()   docker run -d --name <scenario>-<service>
                               -p <port> ... -e KEY=VALUE ... <image> [command]
        later start()   docker start <container>            (update in place)
        stop()          docker stop <container>
        close()         docker stop + docker rm -f <container>

        readiness       CommandLogWatcher over
                        docker logs --since <start timestamp> <container>
        addressing      localhost : docker port <container> <port>

Manifesto:
    subprocess, not docker-py: avoids a heavy dependency and works with
    any engine that speaks the docker CLI.

Tags:
    berth, resources, container, docker, subprocess

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time

from berth.api.descriptors import Container
from berth.core.errors import BackendCommandError
from berth.core.logging import get_logger
from berth.extensions.bindings import BindingContext, ResourceBinding
from berth.resources._command import find_executable, run_command
from berth.resources.base import ManagedResource
from berth.resources.kubernetes.deployment import KUBERNETES_ENVIRONMENT
from berth.resources.logs import CommandLogWatcher, LogWatcher

logger = get_logger(__name__)


class DockerClient:
    """Minimal docker CLI wrapper.

    Raises:
        UnsupportedEnvironmentError: If the docker binary is not on PATH.
    """

    def __init__(self, docker_path: str = "docker") -> None:
        self.docker_cmd = find_executable(docker_path, "docker")

    def _run(self, args: list[str], check: bool = True, timeout: float = 60, merge_stderr: bool = False):
        return run_command(
            [self.docker_cmd, *args],
            backend="docker",
            check=check,
            timeout=timeout,
            merge_stderr=merge_stderr,
        )

    def run(
        self,
        name: str,
        image: str,
        *,
        ports: tuple[int, ...] = (),
        env: dict[str, str] | None = None,
        command: list[str] | None = None,
        labels: dict[str, str] | None = None,
    ) -> str:
        """Create and start a detached container; returns its id."""
        args = ["run", "-d", "--name", name]
        for key, value in (labels or {}).items():
            args.extend(["--label", f"{key}={value}"])
        for port in ports:
            args.extend(["-p", str(port)])
        for key, value in (env or {}).items():
            args.extend(["-e", f"{key}={value}"])
        args.append(image)
        args.extend(command or [])
        # Image pulls can be slow
        return self._run(args, timeout=600).stdout.strip()

    def start(self, name: str) -> None:
        self._run(["start", name])

    def stop(self, name: str, timeout: int = 10) -> None:
        self._run(["stop", "-t", str(timeout), name], timeout=timeout + 30)

    def remove(self, name: str) -> None:
        self._run(["rm", "-f", name], check=False)

    def logs(self, name: str, since: str | None = None) -> str:
        args = ["logs"]
        if since is not None:
            args.extend(["--since", since])
        # docker replays the container's stderr on its own stderr; one pipe keeps the order
        return self._run([*args, name], check=False, merge_stderr=True).stdout

    def port(self, name: str, port: int) -> int:
        """Host port published for a container port."""
        result = self._run(["port", name, str(port)], check=False)
        first = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        if result.returncode != 0 or not first:
            raise BackendCommandError(
                f"Port {port} of container '{name}' is not published",
                returncode=result.returncode,
                stderr=result.stderr,
            ).with_context(backend="docker")
        # "0.0.0.0:49153" or "[::]:49153"
        return int(first.rsplit(":", 1)[-1])


class DockerContainerResource(ManagedResource):
    """One container per service, kept between stop and start."""

    def __init__(self, descriptor: Container, client: DockerClient, *, poll_interval: float = 0.5) -> None:
        super().__init__()
        self.descriptor = descriptor
        self.client = client
        self.poll_interval = poll_interval
        self._created = False
        self._running = False
        self._watcher: CommandLogWatcher | None = None

    @property
    def display_name(self) -> str:
        return self.descriptor.image

    @property
    def container_name(self) -> str:
        context = self.bound_context
        return f"{context.scenario_id}-{context.name}"

    @property
    def log_watcher(self) -> LogWatcher | None:
        return self._watcher

    def start(self) -> None:
        if self._running:
            return

        name = self.container_name
        since = f"{time.time():.6f}"
        if not self._created:
            container_id = self.client.run(
                name,
                self.resolve(self.descriptor.image),
                ports=self.descriptor.ports,
                env=self.service_environment(),
                command=[self.resolve(arg) for arg in self.descriptor.command],
                labels={"berth.scenario": self.bound_context.scenario_id, "berth.service": self.name},
            )
            self._created = True
            logger.info("container_created", service=self.name, container=name, id=container_id[:12])
        else:
            self.client.start(name)
            logger.info("container_restarted", service=self.name, container=name)

        self._watcher = CommandLogWatcher(
            self.name,
            lambda: self.client.logs(name, since=since),
            self.poll_interval,
        )
        self._watcher.start_watching()
        self._running = True

    def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.stop_watching()
        if self._running:
            self.client.stop(self.container_name)
            logger.info("container_stopped", service=self.name)
        self._running = False

    def close(self) -> None:
        try:
            self.stop()
        finally:
            if self._created:
                self.client.remove(self.container_name)
                self._created = False
                logger.info("container_removed", service=self.name)

    def get_host(self) -> str:
        return "localhost"

    def get_mapped_port(self, port: int) -> int:
        return self.client.port(self.container_name, port)

    def is_running(self) -> bool:
        return self._running and self._ready(self.descriptor.expected_log)


class DockerContainerBinding(ResourceBinding):
    """``Container`` descriptors outside the kubernetes environment."""

    name = "docker"

    def applies_for(self, context: BindingContext) -> bool:
        return (
            isinstance(context.descriptor, Container)
            and context.scenario.environment_name != KUBERNETES_ENVIRONMENT
        )

    def init(self, context: BindingContext) -> ManagedResource:
        settings = context.scenario.settings
        return DockerContainerResource(
            context.descriptor,
            DockerClient(settings.docker_path),
            poll_interval=settings.log_poll_interval,
        )


__all__ = ["DockerClient", "DockerContainerBinding", "DockerContainerResource"]
