"""
Companion language server launcher.

Runs the configured Turborepo LSP binary with this process's stdin/stdout
handed straight to it. No bytes are inspected; the editor and the language
server talk to each other directly.
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
import os
import shutil
import subprocess

from turbo_mcp.errors import SpawnFailedError

logger = logging.getLogger("turbo-mcp.lsp")


def resolve_binary(binary: str) -> str:
    """
    Resolve `binary` on PATH (or as a path).

    Raises:
        SpawnFailedError: not found or not executable
    """
    if os.sep in binary:
        if os.path.isfile(binary) and os.access(binary, os.X_OK):
            return binary
    else:
        found = shutil.which(binary)
        if found:
            return found
    raise SpawnFailedError(
        f"Language server not found: {binary}",
        detail={"executable": binary},
    )


def run_lsp(binary: str, args: Sequence[str] = (), env: dict[str, str] | None = None) -> int:
    """
    Run the language server in the foreground and return its exit code.

    stdin, stdout and stderr are inherited, so this blocks until the editor
    closes the session.
    """
    executable = resolve_binary(binary)
    argv = [executable, *args]
    logger.info(f"lsp: {argv}")

    proc_env = dict(os.environ)
    if env:
        proc_env.update(env)

    try:
        result = subprocess.run(argv, env=proc_env, check=False)
    except OSError as e:
        raise SpawnFailedError(
            f"Failed to start {binary}: {e.strerror or e}",
            detail={"executable": binary, "errno": e.errno},
        ) from e
    except KeyboardInterrupt:
        return 130

    logger.info(f"lsp exited with code {result.returncode}")
    return result.returncode
