"""Thin subprocess wrapper shared by the CLI-driven backends."""

from __future__ import annotations

import shutil
import subprocess
from typing import Any

from berth.core.errors import BackendCommandError, UnsupportedEnvironmentError
from berth.core.logging import get_logger

logger = get_logger(__name__)


def find_executable(name: str, backend: str) -> str:
    """Absolute path of a CLI binary, or UnsupportedEnvironmentError."""
    path = shutil.which(name)
    if path is None:
        raise UnsupportedEnvironmentError(
            f"'{name}' CLI not found on PATH; the {backend} backend is not available here"
        ).with_context(backend=backend)
    return path


def run_command(
    cmd: list[str],
    *,
    backend: str,
    check: bool = True,
    timeout: float = 60,
    merge_stderr: bool = False,
) -> subprocess.CompletedProcess[str]:
    """Run a CLI command, capturing text output.

    With ``merge_stderr`` both streams land in ``stdout`` in the order they
    were written and ``stderr`` is empty.
    """
    logger.debug("backend_exec", backend=backend, cmd=" ".join(cmd))
    if merge_stderr:
        streams: dict[str, Any] = {"stdout": subprocess.PIPE, "stderr": subprocess.STDOUT}
    else:
        streams = {"capture_output": True}
    try:
        result = subprocess.run(cmd, text=True, timeout=timeout, **streams)
    except subprocess.TimeoutExpired as e:
        raise BackendCommandError(
            f"{backend} command timed out after {timeout:g}s: {' '.join(cmd[1:])}",
            retryable=True,
            cause=e,
        ).with_context(backend=backend, command=" ".join(cmd)) from e
    if result.stderr is None:
        result.stderr = ""
    if check and result.returncode != 0:
        raise BackendCommandError(
            f"{backend} command failed (exit {result.returncode}): "
            f"{' '.join(cmd[1:])}\n{result.stderr.strip()}",
            returncode=result.returncode,
            stderr=result.stderr,
        ).with_context(backend=backend, command=" ".join(cmd))
    return result
