"""Local process backend: runs a ``Process`` descriptor as a subprocess.

Architecture:

    .. code-block:: text

        Process descriptor field   │ local equivalent
        ───────────────────────────┼──────────────────────────────────────
        command                    │ subprocess argv (placeholders resolved)
        env                        │ os.environ + declared service properties
                                   │ + descriptor env overlay
        working_dir                │ subprocess cwd
        ports                      │ reported unchanged (no mapping)
        expected_log               │ FileLogWatcher on <service folder>/out.log

    stdout and stderr are both redirected into ``out.log``. Every start
    appends to the file and attaches a fresh watcher at the current end of
    it, so readiness is judged on the new run's output only.

Manifesto:
    No Docker, no cluster: the cheapest way to run a service under test is
    to run it next to the tests. Stopping is SIGTERM first, SIGKILL after a
    grace period.

Tags:
    berth, resources, local-process, subprocess, development

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
import subprocess
from typing import IO

from berth.api.descriptors import Process
from berth.core.errors import BackendCommandError
from berth.core.logging import get_logger
from berth.extensions.bindings import BindingContext, ResourceBinding
from berth.resources.base import ManagedResource
from berth.resources.logs import FileLogWatcher, LogWatcher

logger = get_logger(__name__)

LOG_FILE_NAME = "out.log"


class LocalProcessResource(ManagedResource):
    """A local subprocess observed through its output file."""

    def __init__(
        self,
        descriptor: Process,
        *,
        poll_interval: float = 0.5,
        kill_timeout: float = 5.0,
    ) -> None:
        super().__init__()
        self.descriptor = descriptor
        self.poll_interval = poll_interval
        self.kill_timeout = kill_timeout
        self._process: subprocess.Popen[bytes] | None = None
        self._output: IO[bytes] | None = None
        self._watcher: FileLogWatcher | None = None

    @property
    def display_name(self) -> str:
        return " ".join(self.descriptor.command)

    @property
    def log_watcher(self) -> LogWatcher | None:
        return self._watcher

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def _alive(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self) -> None:
        if self._alive():
            return
        if self._process is not None:
            logger.info("process_exited", service=self.name, exit_code=self._process.returncode)
        self._release()

        context = self.bound_context
        folder = context.service_folder
        folder.mkdir(parents=True, exist_ok=True)
        log_path = folder / LOG_FILE_NAME
        offset = log_path.stat().st_size if log_path.exists() else 0

        command = [self.resolve(arg) for arg in self.descriptor.command]
        env = {**os.environ, **self.service_environment()}
        env.update({key: self.resolve(value) for key, value in self.descriptor.env.items()})
        cwd = self.descriptor.working_dir

        self._output = log_path.open("ab")
        try:
            self._process = subprocess.Popen(
                command,
                cwd=cwd,
                env=env,
                stdout=self._output,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            self._close_output()
            raise BackendCommandError(
                f"Could not launch {command[0]!r}: {e}", cause=e
            ).with_context(service=context.name, backend="local-process") from e

        logger.info("process_started", service=context.name, pid=self._process.pid, cmd=" ".join(command))
        self._watcher = FileLogWatcher(context.name, log_path, self.poll_interval, offset=offset)
        self._watcher.start_watching()

    def stop(self) -> None:
        if self._watcher is not None:
            self._watcher.stop_watching()
        process = self._process
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=self.kill_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("process_kill", service=self.name, pid=process.pid)
                process.kill()
                process.wait()
            logger.info("process_stopped", service=self.name, exit_code=process.returncode)
        self._process = None
        self._close_output()

    def _release(self) -> None:
        """Detach the watcher and output file of a previous run."""
        if self._watcher is not None:
            self._watcher.stop_watching()
        self._process = None
        self._close_output()

    def _close_output(self) -> None:
        if self._output is not None:
            self._output.close()
            self._output = None

    def get_host(self) -> str:
        return "localhost"

    def get_mapped_port(self, port: int) -> int:
        return port

    def is_running(self) -> bool:
        return self._alive() and self._ready(self.descriptor.expected_log)


class LocalProcessBinding(ResourceBinding):
    """Any ``Process`` descriptor, in every environment."""

    name = "local-process"

    def applies_for(self, context: BindingContext) -> bool:
        return isinstance(context.descriptor, Process)

    def init(self, context: BindingContext) -> ManagedResource:
        return LocalProcessResource(
            context.descriptor,
            poll_interval=context.scenario.settings.log_poll_interval,
        )


__all__ = ["LOG_FILE_NAME", "LocalProcessBinding", "LocalProcessResource"]
