from __future__ import annotations

import asyncio
from collections.abc import Sequence
import json
import logging
from pathlib import Path
import textwrap
from typing import Any

import pytest

from turbo_mcp.config import TurboMcpConfig
from turbo_mcp.errors import ProcessFailedError
from turbo_mcp.process import ProcessOutput
from turbo_mcp.session import Session
from turbo_mcp.tools.dispatcher import ToolDispatcher
from turbo_mcp.workspace import WorkspaceReader

ROOT_TURBO_JSON = textwrap.dedent(
    """\
    {
      // root pipeline
      "$schema": "https://turbo.build/schema.json",
      "ui": "tui",
      "tasks": {
        "build": {
          "dependsOn": ["^build"],
          "outputs": ["dist/**"],
        },
        "lint": {},
        "dev": {"cache": false, "persistent": true},
        /* web only */
        "web#test": {"dependsOn": ["build"]},
      },
    }
    """
)

LS_OUTPUT = json.dumps(
    {
        "packageManager": "pnpm@9.0.0",
        "packages": {
            "count": 2,
            "items": [
                {"name": "@repo/ui", "path": "packages/ui"},
                {"name": "web", "path": "apps/web"},
            ],
        },
    }
)


class FakeRunner:
    """Stands in for ProcessRunner: records argv, replays canned output."""

    def __init__(self):
        self.calls: list[dict[str, Any]] = []
        self._responses: list[tuple[tuple[str, ...], Any]] = []
        self.delay = 0.0

    def respond(self, *prefix: str, exit_code: int = 0, stdout: str = "", stderr: str = ""):
        self._responses.append((prefix, (exit_code, stdout, stderr)))

    def fail_with(self, *prefix: str, error: Exception):
        self._responses.append((prefix, error))

    @property
    def argvs(self) -> list[list[str]]:
        return [call["args"] for call in self.calls]

    async def run(
        self,
        executable: str,
        args: Sequence[str],
        cwd,
        timeout=None,
        env=None,
        check: bool = True,
    ) -> ProcessOutput:
        args = list(args)
        self.calls.append(
            {"executable": executable, "args": args, "cwd": Path(cwd), "timeout": timeout}
        )
        if self.delay:
            await asyncio.sleep(self.delay)

        result: Any = (0, "", "")
        # latest registration wins
        for prefix, canned in reversed(self._responses):
            if tuple(args[: len(prefix)]) == prefix:
                result = canned
                break
        if isinstance(result, Exception):
            raise result

        exit_code, stdout, stderr = result
        output = ProcessOutput(
            argv=[executable, *args],
            cwd=str(cwd),
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
        )
        if check and exit_code != 0:
            raise ProcessFailedError(
                f"{executable} exited with code {exit_code}",
                exit_code=exit_code,
                stdout=stdout,
                stderr=stderr,
            )
        return output


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "TURBO_MCP_CONFIG",
        "TURBO_MCP_LOG_LEVEL",
        "TURBO_MCP_WORKDIR",
        "TURBO_MCP_TURBO_BIN",
        "TURBO_MCP_LOG_FORMAT",
        "TURBO_MCP_METRICS_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    """CLI commands install stderr handlers; drop them so later tests log normally."""
    yield
    logger = logging.getLogger("turbo-mcp")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    """A two-package pnpm-style workspace with one package-level turbo.json."""
    root = tmp_path / "repo"
    root.mkdir()
    (root / "turbo.json").write_text(ROOT_TURBO_JSON, encoding="utf-8")
    write_json(
        root / "package.json",
        {"name": "repo", "private": True, "workspaces": ["apps/*", "packages/*"]},
    )
    write_json(
        root / "apps/web/package.json",
        {
            "name": "web",
            "scripts": {
                "build": "next build",
                "dev": "next dev",
                "lint": "eslint .",
                "start": "next start",
            },
        },
    )
    write_json(
        root / "packages/ui/package.json",
        {"name": "@repo/ui", "scripts": {"build": "tsc", "test": "vitest"}},
    )
    write_json(
        root / "packages/ui/turbo.json",
        {"extends": ["//"], "tasks": {"build": {"outputs": ["lib/**"]}}},
    )
    return root


@pytest.fixture
def fake_runner() -> FakeRunner:
    runner = FakeRunner()
    runner.respond("ls", stdout=LS_OUTPUT)
    return runner


@pytest.fixture
def config() -> TurboMcpConfig:
    return TurboMcpConfig()


@pytest.fixture
def session(monorepo: Path) -> Session:
    return Session(monorepo)


@pytest.fixture
def dispatcher(session: Session, config: TurboMcpConfig, fake_runner: FakeRunner) -> ToolDispatcher:
    reader = WorkspaceReader(fake_runner, binary="turbo", timeout=config.timeouts.query)
    return ToolDispatcher(session, config, runner=fake_runner, reader=reader)
