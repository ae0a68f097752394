"""Tests for the language server launcher."""

import os
from pathlib import Path

import pytest

from turbo_mcp.errors import SpawnFailedError
from turbo_mcp.lsp import resolve_binary, run_lsp

pytestmark = pytest.mark.skipif(os.name != "posix", reason="uses sh scripts")


def _script(path: Path, body: str) -> Path:
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return path


def test_resolve_on_path():
    assert resolve_binary("sh").endswith("/sh")


def test_resolve_missing():
    with pytest.raises(SpawnFailedError) as exc:
        resolve_binary("no-such-turborepo-lsp")
    assert exc.value.detail == {"executable": "no-such-turborepo-lsp"}


def test_resolve_non_executable_path(tmp_path: Path):
    path = tmp_path / "lsp"
    path.write_text("#!/bin/sh\n")
    with pytest.raises(SpawnFailedError):
        resolve_binary(str(path))


def test_exit_code_is_propagated(tmp_path: Path):
    lsp = _script(tmp_path / "lsp", "exit 7")
    assert run_lsp(str(lsp)) == 7


def test_args_and_env_are_passed(tmp_path: Path):
    marker = tmp_path / "marker"
    lsp = _script(tmp_path / "lsp", f'echo "$1 $TURBO_LSP_PROBE" > {marker}')

    assert run_lsp(str(lsp), ["--stdio"], env={"TURBO_LSP_PROBE": "on"}) == 0
    assert marker.read_text() == "--stdio on\n"
