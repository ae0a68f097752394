"""
Tool requests.

Each MCP tool decodes into one frozen request class. Decoding is where input
validation happens: a request object that exists is a valid request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from turbo_mcp.errors import InvalidInputError


def _check_fields(tool: str, args: dict[str, Any], allowed: tuple[str, ...]) -> None:
    for key in args:
        if key not in allowed:
            raise InvalidInputError(
                f"{tool}: unexpected field '{key}' (allowed: {', '.join(allowed) or 'none'})",
                field=key,
            )


def _str(tool: str, args: dict[str, Any], field: str, required: bool = False) -> str | None:
    value = args.get(field)
    if value is None:
        if required:
            raise InvalidInputError(f"{tool}: '{field}' is required", field=field)
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{tool}: '{field}' must be a string", field=field)
    if required and not value.strip():
        raise InvalidInputError(f"{tool}: '{field}' must not be empty", field=field)
    return value


def _choice(tool: str, args: dict[str, Any], field: str, choices: tuple[str, ...]) -> str:
    value = _str(tool, args, field, required=True)
    if value not in choices:
        raise InvalidInputError(
            f"{tool}: '{field}' must be one of {', '.join(choices)} (got '{value}')", field=field
        )
    return value


def _bool(tool: str, args: dict[str, Any], field: str) -> bool:
    value = args.get(field)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise InvalidInputError(f"{tool}: '{field}' must be a boolean", field=field)
    return value


def _str_list(tool: str, args: dict[str, Any], field: str) -> tuple[str, ...]:
    value = args.get(field)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
        raise InvalidInputError(
            f"{tool}: '{field}' must be a list of non-empty strings", field=field
        )
    return tuple(value)


@dataclass(frozen=True)
class WorkdirRequest:
    name: ClassVar[str] = "workdir"
    fields: ClassVar[tuple[str, ...]] = ("mode", "path")

    mode: str
    path: str | None = None

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> WorkdirRequest:
        mode = _choice(cls.name, args, "mode", ("get", "set"))
        path = _str(cls.name, args, "path", required=mode == "set")
        return cls(mode=mode, path=path)


@dataclass(frozen=True)
class DaemonRequest:
    name: ClassVar[str] = "daemon"
    fields: ClassVar[tuple[str, ...]] = ("mode",)

    mode: str

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> DaemonRequest:
        return cls(mode=_choice(cls.name, args, "mode", ("status", "start", "stop")))


@dataclass(frozen=True)
class RunRequest:
    name: ClassVar[str] = "run"
    fields: ClassVar[tuple[str, ...]] = ("tasks", "filter", "dry_run", "continue_on_error")

    tasks: tuple[str, ...]
    filter: str | None = None
    dry_run: bool = False
    continue_on_error: bool = False

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> RunRequest:
        if "tasks" not in args or args["tasks"] is None:
            raise InvalidInputError("run: 'tasks' is required", field="tasks")
        tasks = _str_list(cls.name, args, "tasks")
        if not tasks:
            raise InvalidInputError("run: 'tasks' must name at least one task", field="tasks")
        return cls(
            tasks=tasks,
            filter=_str(cls.name, args, "filter"),
            dry_run=_bool(cls.name, args, "dry_run"),
            continue_on_error=_bool(cls.name, args, "continue_on_error"),
        )


@dataclass(frozen=True)
class GraphRequest:
    name: ClassVar[str] = "graph"
    fields: ClassVar[tuple[str, ...]] = ("task",)

    task: str = "build"

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> GraphRequest:
        task = _str(cls.name, args, "task")
        return cls(task=task) if task and task.strip() else cls()


@dataclass(frozen=True)
class PruneRequest:
    name: ClassVar[str] = "prune"
    fields: ClassVar[tuple[str, ...]] = ("scope", "out_dir", "docker")

    scope: str
    out_dir: str | None = None
    docker: bool = False

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> PruneRequest:
        return cls(
            scope=_str(cls.name, args, "scope", required=True) or "",
            out_dir=_str(cls.name, args, "out_dir"),
            docker=_bool(cls.name, args, "docker"),
        )


@dataclass(frozen=True)
class QueryRequest:
    name: ClassVar[str] = "query"
    fields: ClassVar[tuple[str, ...]] = ("query",)

    query: str

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> QueryRequest:
        return cls(query=_str(cls.name, args, "query", required=True) or "")


@dataclass(frozen=True)
class LintRequest:
    name: ClassVar[str] = "lint"
    fields: ClassVar[tuple[str, ...]] = ("packages",)

    packages: tuple[str, ...] = ()

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> LintRequest:
        return cls(packages=_str_list(cls.name, args, "packages"))


@dataclass(frozen=True)
class InfoRequest:
    name: ClassVar[str] = "info"
    fields: ClassVar[tuple[str, ...]] = ("package",)

    package: str | None = None

    @classmethod
    def from_arguments(cls, args: dict[str, Any]) -> InfoRequest:
        package = _str(cls.name, args, "package")
        return cls(package=package if package and package.strip() else None)


ToolRequest = Union[
    WorkdirRequest,
    DaemonRequest,
    RunRequest,
    GraphRequest,
    PruneRequest,
    QueryRequest,
    LintRequest,
    InfoRequest,
]

REQUEST_TYPES: dict[str, type] = {
    cls.name: cls
    for cls in (
        WorkdirRequest,
        DaemonRequest,
        RunRequest,
        GraphRequest,
        PruneRequest,
        QueryRequest,
        LintRequest,
        InfoRequest,
    )
}


def parse_request(name: str, arguments: dict[str, Any] | None) -> ToolRequest:
    """
    Decode a tool call into its request class.

    Raises:
        InvalidInputError: unknown tool, unexpected field, or bad field value
    """
    request_type = REQUEST_TYPES.get(name)
    if request_type is None:
        raise InvalidInputError(
            f"Unknown tool: {name} (available: {', '.join(REQUEST_TYPES)})", field="name"
        )
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidInputError(f"{name}: arguments must be an object", field="arguments")
    _check_fields(name, arguments, request_type.fields)
    return request_type.from_arguments(arguments)
