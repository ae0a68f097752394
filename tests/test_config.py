"""Tests for turbo-mcp.toml loading and env overrides."""

from pathlib import Path

import pytest

from turbo_mcp.config import TimeoutsConfig, load_config


def test_defaults_when_file_missing(tmp_path: Path):
    cfg = load_config(tmp_path / "missing.toml")

    assert cfg.server.log_level == "info"
    assert cfg.server.workdir == ""
    assert cfg.turbo.binary == "turbo"
    assert cfg.turbo.env["NO_COLOR"] == "1"
    assert cfg.timeouts.run == 1800
    assert cfg.observability.log_format == "text"


def test_toml_sections_are_merged(tmp_path: Path):
    path = tmp_path / "turbo-mcp.toml"
    path.write_text(
        """
[server]
log_level = "debug"

[turbo]
binary = "/opt/turbo/bin/turbo"
env = { TURBO_TELEMETRY_DISABLED = "1" }

[timeouts]
run = 10
"""
    )
    cfg = load_config(path)

    assert cfg.server.log_level == "debug"
    assert cfg.turbo.binary == "/opt/turbo/bin/turbo"
    # the env table extends the defaults instead of replacing them
    assert cfg.turbo.env["TURBO_TELEMETRY_DISABLED"] == "1"
    assert cfg.turbo.env["NO_COLOR"] == "1"
    assert cfg.timeouts.run == 10
    assert cfg.timeouts.prune == 300


def test_env_beats_toml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "turbo-mcp.toml"
    path.write_text('[turbo]\nbinary = "from-toml"\n')
    monkeypatch.setenv("TURBO_MCP_TURBO_BIN", "from-env")
    monkeypatch.setenv("TURBO_MCP_WORKDIR", str(tmp_path))
    monkeypatch.setenv("TURBO_MCP_METRICS_ENABLED", "false")

    cfg = load_config(path)

    assert cfg.turbo.binary == "from-env"
    assert cfg.server.workdir == str(tmp_path)
    assert cfg.observability.metrics_enabled is False


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "elsewhere.toml"
    path.write_text('[observability]\nlog_format = "json"\n')
    monkeypatch.setenv("TURBO_MCP_CONFIG", str(path))

    assert load_config().observability.log_format == "json"


def test_invalid_log_level_rejected(tmp_path: Path):
    path = tmp_path / "turbo-mcp.toml"
    path.write_text('[server]\nlog_level = "loud"\n')
    with pytest.raises(ValueError, match="log_level"):
        load_config(path)


def test_non_positive_timeout_rejected(tmp_path: Path):
    path = tmp_path / "turbo-mcp.toml"
    path.write_text("[timeouts]\nlint = 0\n")
    with pytest.raises(ValueError, match="timeouts.lint"):
        load_config(path)


def test_non_numeric_timeout_rejected(tmp_path: Path):
    path = tmp_path / "turbo-mcp.toml"
    path.write_text('[timeouts]\nrun = "abc"\n')
    with pytest.raises(ValueError, match="timeouts.run must be a number"):
        load_config(path)


def test_timeout_lookup_falls_back_to_default():
    timeouts = TimeoutsConfig(default=42, run=7)
    assert timeouts.for_action("run") == 7
    assert timeouts.for_action("graph") == 42
