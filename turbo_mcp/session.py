"""Per-connection session state."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from turbo_mcp.errors import InvalidPathError

logger = logging.getLogger("turbo-mcp.session")


class Session:
    """
    Holds the working directory every tool and resource operates in.

    The directory is always absolute and resolved. It only changes through
    set_workdir(), which either fully succeeds or leaves it untouched.
    """

    def __init__(self, workdir: str | Path | None = None):
        start = Path(workdir).expanduser() if workdir else Path(os.getcwd())
        self._workdir = self._checked(start.resolve())

    @property
    def workdir(self) -> Path:
        return self._workdir

    @staticmethod
    def _checked(path: Path) -> Path:
        if not path.exists():
            raise InvalidPathError(f"Path does not exist: {path}", detail={"path": str(path)})
        if not path.is_dir():
            raise InvalidPathError(f"Not a directory: {path}", detail={"path": str(path)})
        return path

    def resolve(self, path: str | Path) -> Path:
        """Resolve `path` against the current working directory."""
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self._workdir / candidate
        return candidate.resolve()

    def set_workdir(self, path: str | Path) -> Path:
        """
        Switch the working directory.

        Raises:
            InvalidPathError: path is missing or not a directory
        """
        new = self._checked(self.resolve(path))
        if new != self._workdir:
            logger.info(f"workdir: {self._workdir} -> {new}")
        self._workdir = new
        return new
