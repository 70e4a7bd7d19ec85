"""Background log observation for managed resources.

Every running resource has one ``LogWatcher``: a daemon thread that polls
the backend for new output and appends it to a ``LogBuffer``. Readiness
checks and ``logs()`` calls only read the buffer, so polling a resource's
state never waits on the backend.

Architecture:

    .. code-block:: text

        backend output ──poll()──► LogWatcher thread ──append──► LogBuffer
                                        │                           ▲
                                        └─ logger.info(service_log) │
                                                                    │
        ManagedResource.is_running() / logs() ──────── snapshot / contains

    LogWatcher (abstract)
    ├── FileLogWatcher     tails a file (local processes)
    └── CommandLogWatcher  diffs repeated full dumps (docker logs, kubectl logs)

Manifesto:
    One writer, many readers, one lock. The buffer only ever grows while a
    watcher is attached, which makes "has the expected line appeared yet"
    a monotonic question.

Tags:
    berth, resources, logs, readiness, background-thread

Doc-Types:
    api-reference
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from berth.core.logging import get_logger

logger = get_logger(__name__)


class LogBuffer:
    """Thread-safe append-only buffer of log lines."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def append(self, line: str) -> None:
        with self._lock:
            self._lines.append(line)

    def extend(self, lines: list[str]) -> None:
        with self._lock:
            self._lines.extend(lines)

    def snapshot(self) -> list[str]:
        """Copy of every line accumulated so far."""
        with self._lock:
            return list(self._lines)

    def contains(self, text: str) -> bool:
        with self._lock:
            return any(text in line for line in self._lines)

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)


class LogWatcher(ABC):
    """Supervised background poller feeding a :class:`LogBuffer`.

    Subclasses implement :meth:`poll`, returning only the lines that
    appeared since the previous call.
    """

    def __init__(self, name: str, poll_interval: float = 0.5, *, echo: bool = True) -> None:
        self.name = name
        self.poll_interval = poll_interval
        self.echo = echo
        self.buffer = LogBuffer()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @abstractmethod
    def poll(self) -> list[str]:
        """Fetch new output lines from the backend."""

    def start_watching(self) -> None:
        if self.is_watching:
            logger.warning("log_watcher_already_started", service=self.name)
            return

        self._stop_event.clear()

        def _loop() -> None:
            while not self._stop_event.is_set():
                self._poll_once()
                self._stop_event.wait(self.poll_interval)

        self._thread = threading.Thread(target=_loop, daemon=True, name=f"berth-logs-{self.name}")
        self._thread.start()
        logger.debug("log_watcher_started", service=self.name)

    def stop_watching(self, timeout: float = 5.0) -> None:
        """Stop the poller and collect whatever output is still pending."""
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("log_watcher_did_not_stop", service=self.name)
        self._thread = None
        self._poll_once()
        logger.debug("log_watcher_stopped", service=self.name, lines=len(self.buffer))

    def _poll_once(self) -> None:
        try:
            lines = self.poll()
        except Exception as e:
            logger.warning("log_poll_failed", service=self.name, error=str(e))
            return
        if not lines:
            return
        self.buffer.extend(lines)
        if self.echo:
            for line in lines:
                logger.info("service_log", service=self.name, line=line)

    @property
    def is_watching(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def logs(self) -> list[str]:
        return self.buffer.snapshot()

    def logs_contain(self, text: str) -> bool:
        return self.buffer.contains(text)


class FileLogWatcher(LogWatcher):
    """Tail a file that the resource writes its output into."""

    def __init__(self, name: str, path: Path, poll_interval: float = 0.5, *, offset: int = 0, **kwargs) -> None:
        super().__init__(name, poll_interval, **kwargs)
        self.path = path
        self._offset = offset
        self._pending = ""

    def poll(self) -> list[str]:
        if not self.path.is_file():
            return []
        with self.path.open("r", encoding="utf-8", errors="replace") as fh:
            fh.seek(self._offset)
            chunk = fh.read()
            self._offset = fh.tell()
        if not chunk:
            return []
        text = self._pending + chunk
        lines = text.split("\n")
        # Keep an unterminated last line until the rest of it arrives
        self._pending = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def stop_watching(self, timeout: float = 5.0) -> None:
        super().stop_watching(timeout)
        if self._pending:
            self.buffer.append(self._pending)
            self._pending = ""


class CommandLogWatcher(LogWatcher):
    """Poll a command that returns the complete output every time.

    ``docker logs`` and ``kubectl logs`` print everything the workload wrote
    so far; only the lines beyond the previously seen count are new. If the
    output shrinks (the workload was replaced) everything is treated as new.
    """

    def __init__(self, name: str, fetch: Callable[[], str], poll_interval: float = 0.5, **kwargs) -> None:
        super().__init__(name, poll_interval, **kwargs)
        self.fetch = fetch
        self._seen = 0

    def poll(self) -> list[str]:
        lines = self.fetch().splitlines()
        if len(lines) < self._seen:
            self._seen = 0
        new = lines[self._seen:]
        self._seen = len(lines)
        return new


__all__ = ["CommandLogWatcher", "FileLogWatcher", "LogBuffer", "LogWatcher"]
