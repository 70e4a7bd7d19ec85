"""
Process-level settings for berth.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    ``BerthSettings`` is constructed once by whoever drives a scenario and
    passed by reference into the runner, the registry's backends and the
    log setup. Nothing in berth reads a hidden global settings object.

    - **Pydantic validation:** Type-checked at construction
    - **Environment-driven:** Reads ``BERTH_*`` env vars and ``.env`` files
    - **Sensible defaults:** Works out of the box for a local checkout

Examples:
    >>> settings = BerthSettings(environment="kubernetes")
    >>> settings.resolved_log_dir()
    PosixPath('target/berth/logs')

Tags:
    settings, configuration, pydantic, environment, berth

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BerthSettings(BaseSettings):
    """Settings shared by every scenario run in this process.

    Fields
    ──────
    log_level                  : Console log level
    log_json                   : JSON console output (None = auto-detect tty)
    output_dir                 : Root for scenario and service folders
    log_dir                    : Where scenario log files go (default output_dir/logs)
    properties_file            : Scenario properties file loaded at scenario start
    environment                : Target environment (local, docker, kubernetes)
    docker_path                : docker CLI binary
    kubectl_path               : kubectl CLI binary
    kubernetes_delete_namespace: Delete the scenario namespace after the run
    log_poll_interval          : Seconds between two backend log polls
    """

    model_config = SettingsConfigDict(
        env_prefix="BERTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    # ── Artifacts ────────────────────────────────────────────────
    output_dir: Path = Field(default=Path("target/berth"))
    log_dir: Path | None = Field(default=None)
    properties_file: Path = Field(default=Path("berth.properties"))

    # ── Backends ─────────────────────────────────────────────────
    environment: str = Field(default="local")
    docker_path: str = Field(default="docker")
    kubectl_path: str = Field(default="kubectl")
    kubernetes_delete_namespace: bool = Field(default=True)
    log_poll_interval: float = Field(default=0.5, gt=0)

    def resolved_log_dir(self) -> Path:
        """Directory holding one log file per scenario."""
        return self.log_dir if self.log_dir is not None else self.output_dir / "logs"


__all__ = ["BerthSettings"]
