"""
turbo-mcp error types.

Every failure a request can hit maps to one of these. The dispatcher and the
resource provider convert them into typed responses; none of them ends the
server loop.
"""

from __future__ import annotations

from typing import Any


class TurboMcpError(Exception):
    """Base error for turbo-mcp operations."""

    code: str = "InternalError"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.detail:
            data["detail"] = self.detail
        return data


class InvalidInputError(TurboMcpError):
    """Malformed or missing request field."""

    code = "InvalidInput"

    def __init__(self, message: str, *, field: str, detail: dict[str, Any] | None = None):
        super().__init__(message, detail={"field": field, **(detail or {})})
        self.field = field


class InvalidPathError(TurboMcpError):
    """Path does not exist or is not a directory."""

    code = "InvalidPath"


class ResourceNotFoundError(TurboMcpError):
    """Unknown resource URI."""

    code = "ResourceNotFound"


class ConfigNotFoundError(TurboMcpError):
    """No turbo.json between the working directory and the filesystem root."""

    code = "ConfigNotFound"


class ConfigParseError(TurboMcpError):
    """Configuration file could not be parsed."""

    code = "ConfigParseError"

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        line: int | None = None,
        column: int | None = None,
    ):
        detail: dict[str, Any] = {}
        if path is not None:
            detail["path"] = path
        if line is not None:
            detail["line"] = line
        if column is not None:
            detail["column"] = column
        super().__init__(message, detail=detail)
        self.path = path
        self.line = line
        self.column = column


class SpawnFailedError(TurboMcpError):
    """The executable could not be started at all."""

    code = "SpawnFailed"


class ProcessFailedError(TurboMcpError):
    """The external tool ran and exited non-zero."""

    code = "ProcessFailed"

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            detail={"exit_code": exit_code, "stdout": stdout, "stderr": stderr, **(detail or {})},
        )
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class OutputParseError(ProcessFailedError):
    """The external tool's output did not have the expected shape."""


class ProcessTimeoutError(TurboMcpError):
    """Subprocess exceeded its time bound and was killed."""

    code = "Timeout"

    def __init__(self, message: str, *, timeout: float, stdout: str = "", stderr: str = ""):
        super().__init__(message, detail={"timeout": timeout, "stdout": stdout, "stderr": stderr})
        self.timeout = timeout
        self.stdout = stdout
        self.stderr = stderr


class WorkspaceQueryFailedError(TurboMcpError):
    """Listing workspace packages failed."""

    code = "WorkspaceQueryFailed"
