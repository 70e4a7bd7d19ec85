"""
Structured logging for berth.

This module provides a standardized logging configuration using structlog,
routed through the standard library so that every scenario can capture its
own log file next to the console output.

Manifesto:
    A failed scenario is only debuggable if its log tells the whole story:
    which services were resolved, which backend commands ran, and what each
    service printed while it was starting. Structured events with bound
    scenario context make that log greppable and machine-readable.

Architecture:
    ::

        get_logger(__name__).info("service_started", service="greetings")
                │
                ▼
        structlog processor chain (timestamp, level, logger name, context)
                │
                ▼
        stdlib root logger
        ├── console handler  (ConsoleRenderer or JSONRenderer)
        └── scenario handler (plain ConsoleRenderer → <log_dir>/<id>.log)

Features:
    - **configure_logging():** Console/JSON rendering, level filtering
    - **attach_log_file():** Per-scenario file capture via stdlib handlers
    - **bind_context():** Scenario id bound to every subsequent event
    - **LogContext:** Scoped binding for a block of work

Examples:
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("scenario_started", scenario_id="greetings-20240101")

Tags:
    logging, structlog, observability, scenario-log, berth

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Store service name for metadata
_SERVICE_NAME = "berth"

_console_handler: logging.Handler | None = None


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("app", _SERVICE_NAME)
    return event_dict


def _shared_processors(add_timestamp: bool = True) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "berth",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Application name included in every event
        add_timestamp: Include ISO timestamp in logs

    Example:
        # CI (JSON for log aggregation)
        configure_logging(level="INFO", json_format=True)

        # Development (auto-detect: colored console if tty)
        configure_logging(level="DEBUG")
    """
    global _SERVICE_NAME, _console_handler
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors = _shared_processors(add_timestamp)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        cache_logger_on_first_use=False,
    )

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    if _console_handler is not None:
        root.removeHandler(_console_handler)
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper()))
    _console_handler = handler


def is_configured() -> bool:
    """Whether :func:`configure_logging` (or another structlog setup) already ran."""
    return structlog.is_configured()


def attach_log_file(path: Path, level: str = "DEBUG") -> logging.Handler:
    """Start capturing every log event into *path*.

    The file is created immediately so that it exists even if nothing is
    logged. Returns the handler to pass to :func:`detach_log_file`.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.dev.ConsoleRenderer(colors=False),
            ],
            foreign_pre_chain=_shared_processors(),
        )
    )
    logging.getLogger().addHandler(handler)
    return handler


def detach_log_file(handler: logging.Handler) -> None:
    """Stop capturing into a file handler returned by :func:`attach_log_file`."""
    logging.getLogger().removeHandler(handler)
    handler.close()


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs.

    Example:
        bind_context(scenario_id="greetings-20240101")
        logger.info("service_started")  # Includes scenario_id
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(service="greetings"):
            logger.info("starting")  # includes service
        logger.info("done")  # service removed
    """

    def __init__(self, **kwargs: Any) -> None:
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: object) -> None:
        unbind_context(*self._context)


__all__ = [
    "configure_logging",
    "is_configured",
    "attach_log_file",
    "detach_log_file",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
]
