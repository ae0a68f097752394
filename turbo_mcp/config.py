"""turbo-mcp configuration loader - reads turbo-mcp.toml with ENV overrides."""  # noqa: I001

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any, cast

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class ServerConfig:
    """Server settings."""

    log_level: str = "info"
    workdir: str = ""  # empty = process cwd

    def validate(self) -> None:
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")


@dataclass
class TurboConfig:
    """External turbo executable settings."""

    binary: str = "turbo"
    env: dict[str, str] = field(
        default_factory=lambda: {"NO_COLOR": "1", "TURBO_NO_UPDATE_NOTIFIER": "1"}
    )
    lsp_binary: str = "turborepo-lsp"

    def validate(self) -> None:
        if not self.binary.strip():
            raise ValueError("turbo.binary must not be empty")
        for key, value in self.env.items():
            if not isinstance(value, str):
                raise ValueError(f"turbo.env.{key} must be a string")


@dataclass
class TimeoutsConfig:
    """Per-action subprocess time bounds, in seconds."""

    default: float = 60
    run: float = 1800
    prune: float = 300
    daemon: float = 30
    query: float = 60
    lint: float = 120

    def validate(self) -> None:
        for name in ("default", "run", "prune", "daemon", "query", "lint"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"timeouts.{name} must be a number")
            if value <= 0:
                raise ValueError(f"timeouts.{name} must be positive")

    def for_action(self, action: str) -> float:
        value = getattr(self, action, None)
        return float(value) if isinstance(value, (int, float)) else float(self.default)


@dataclass
class ObservabilityConfig:
    """Logging and metrics settings."""

    log_format: str = "text"  # "json" | "text"
    include_correlation_id: bool = True
    metrics_enabled: bool = True

    def validate(self) -> None:
        if self.log_format not in ("json", "text"):
            raise ValueError(f"Invalid log_format: {self.log_format}")


@dataclass
class TurboMcpConfig:
    """Root configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    turbo: TurboConfig = field(default_factory=TurboConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def validate(self) -> None:
        self.server.validate()
        self.turbo.validate()
        self.timeouts.validate()
        self.observability.validate()


def _truthy(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def _apply_env_overrides(cfg: TurboMcpConfig) -> TurboMcpConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    if os.getenv("TURBO_MCP_LOG_LEVEL"):
        cfg.server.log_level = os.getenv("TURBO_MCP_LOG_LEVEL", cfg.server.log_level)

    if os.getenv("TURBO_MCP_WORKDIR"):
        cfg.server.workdir = os.getenv("TURBO_MCP_WORKDIR", cfg.server.workdir)

    if os.getenv("TURBO_MCP_TURBO_BIN"):
        cfg.turbo.binary = os.getenv("TURBO_MCP_TURBO_BIN", cfg.turbo.binary)

    if os.getenv("TURBO_MCP_LOG_FORMAT"):
        cfg.observability.log_format = os.getenv(
            "TURBO_MCP_LOG_FORMAT", cfg.observability.log_format
        )
    if os.getenv("TURBO_MCP_METRICS_ENABLED"):
        cfg.observability.metrics_enabled = _truthy(os.getenv("TURBO_MCP_METRICS_ENABLED", ""))

    return cfg


def _merge_section(target: Any, data: dict[str, Any]) -> None:
    """Copy known keys from a TOML table onto a config dataclass."""
    for key, value in data.items():
        if hasattr(target, key):
            setattr(target, key, value)


def load_config(config_path: str | Path | None = None) -> TurboMcpConfig:
    """
    Load config from turbo-mcp.toml with ENV overrides.

    Precedence: ENV → TOML → defaults

    Args:
        config_path: Path to turbo-mcp.toml. If None, searches:
            1. TURBO_MCP_CONFIG env var
            2. ./turbo-mcp.toml

    Returns:
        TurboMcpConfig dataclass with merged settings.
    """
    if config_path is None:
        if os.getenv("TURBO_MCP_CONFIG"):
            config_path = Path(cast(str, os.getenv("TURBO_MCP_CONFIG")))
        else:
            config_path = Path("turbo-mcp.toml")
    else:
        config_path = Path(config_path)

    cfg = TurboMcpConfig()

    if config_path.exists():
        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        _merge_section(cfg.server, data.get("server", {}))

        turbo = dict(data.get("turbo", {}))
        # env is merged so that the defaults survive a partial table
        env = turbo.pop("env", None)
        _merge_section(cfg.turbo, turbo)
        if env:
            cfg.turbo.env = {**cfg.turbo.env, **env}

        _merge_section(cfg.timeouts, data.get("timeouts", {}))
        _merge_section(cfg.observability, data.get("observability", {}))

    cfg = _apply_env_overrides(cfg)
    cfg.validate()

    return cfg
