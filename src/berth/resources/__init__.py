"""Managed resources: the backend contract, log watchers and the shipped backends.

Backends are imported from their own modules (``berth.resources.process``,
``berth.resources.docker``, ``berth.resources.kubernetes``).
"""

from berth.resources.base import ManagedResource
from berth.resources.logs import CommandLogWatcher, FileLogWatcher, LogBuffer, LogWatcher

__all__ = [
    "CommandLogWatcher",
    "FileLogWatcher",
    "LogBuffer",
    "LogWatcher",
    "ManagedResource",
]
