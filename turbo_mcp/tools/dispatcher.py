"""
Tool dispatcher.

Decodes a tool call into its request class, runs the matching handler and
wraps the outcome in a result envelope:

    {"ok": true,  "tool": ..., "message": ..., "payload": ...}
    {"ok": false, "tool": ..., "error": {"code", "message", "detail"}}

A handler failure only ever produces a failure envelope; it never escapes
to the transport.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
import logging
from pathlib import Path
from typing import Any

from turbo_mcp.config import TurboMcpConfig
from turbo_mcp.errors import (
    ConfigNotFoundError,
    InvalidInputError,
    ProcessFailedError,
    TurboMcpError,
)
from turbo_mcp.models import ConfigSnapshot, TaskDefinition
from turbo_mcp.process import ProcessOutput, ProcessRunner
from turbo_mcp.session import Session
from turbo_mcp.tools.decode import (
    decode_daemon_status,
    decode_dry_run,
    decode_key_values,
    decode_query,
    decode_run_failures,
    decode_run_summary,
)
from turbo_mcp.tools.lint import ERROR, VALIDATION_FAILED, WARNING, Diagnostic, lint_snapshot
from turbo_mcp.tools.requests import (
    DaemonRequest,
    GraphRequest,
    InfoRequest,
    LintRequest,
    PruneRequest,
    QueryRequest,
    RunRequest,
    WorkdirRequest,
    parse_request,
)
from turbo_mcp.workspace import WorkspaceReader, find_config

logger = logging.getLogger("turbo-mcp.dispatch")

DEFAULT_PRUNE_DIR = "out"

HandlerResult = tuple[str, Any]


def success(tool: str, message: str, payload: Any) -> dict[str, Any]:
    return {"ok": True, "tool": tool, "message": message, "payload": payload}


def failure(tool: str, error: TurboMcpError) -> dict[str, Any]:
    return {
        "ok": False,
        "tool": tool,
        "error": {"code": error.code, "message": error.message, "detail": error.detail},
    }


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


class ToolDispatcher:
    """Maps each request class to the handler that executes it."""

    def __init__(
        self,
        session: Session,
        config: TurboMcpConfig,
        runner: ProcessRunner | None = None,
        reader: WorkspaceReader | None = None,
    ):
        self.session = session
        self.config = config
        self.binary = config.turbo.binary
        self.runner = runner or ProcessRunner(env=config.turbo.env)
        self.reader = reader or WorkspaceReader(
            self.runner, binary=self.binary, timeout=config.timeouts.for_action("query")
        )
        self.handlers: dict[type, Callable[[Any], Awaitable[HandlerResult]]] = {
            WorkdirRequest: self._handle_workdir,
            DaemonRequest: self._handle_daemon,
            RunRequest: self._handle_run,
            GraphRequest: self._handle_graph,
            PruneRequest: self._handle_prune,
            QueryRequest: self._handle_query,
            LintRequest: self._handle_lint,
            InfoRequest: self._handle_info,
        }

    async def dispatch(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """Decode and execute one tool call; always returns an envelope."""
        try:
            request = parse_request(name, arguments)
            handler = self.handlers[type(request)]
            message, payload = await handler(request)
        except TurboMcpError as e:
            logger.warning(f"{name} failed: [{e.code}] {e.message}")
            return failure(name, e)
        except Exception as e:
            logger.exception(f"{name}: unexpected error")
            return failure(name, TurboMcpError(f"Internal error: {e}"))
        return success(name, message, payload)

    async def _turbo(self, args: Sequence[str], action: str, check: bool = True) -> ProcessOutput:
        return await self.runner.run(
            self.binary,
            list(args),
            cwd=self.session.workdir,
            timeout=self.config.timeouts.for_action(action),
            check=check,
        )

    async def _handle_workdir(self, request: WorkdirRequest) -> HandlerResult:
        if request.mode == "get":
            workdir = str(self.session.workdir)
            return f"Working directory: {workdir}", {"workdir": workdir}

        previous = self.session.workdir
        new = self.session.set_workdir(request.path or "")
        return f"Working directory set to {new}", {"workdir": str(new), "previous": str(previous)}

    async def _handle_daemon(self, request: DaemonRequest) -> HandlerResult:
        args = ["daemon", request.mode]
        if request.mode == "status":
            # a stopped daemon makes turbo exit non-zero; that is still an answer
            output = await self._turbo(args, "daemon", check=False)
            status = decode_daemon_status(output.exit_code, output.stdout, output.stderr)
            return f"turbo daemon is {status['status']}", status

        output = await self._turbo(args, "daemon")
        verb = "started" if request.mode == "start" else "stopped"
        return f"turbo daemon {verb}", {
            "mode": request.mode,
            "exit_code": output.exit_code,
            "output": output.combined.strip(),
            "details": decode_key_values(output.stdout),
        }

    async def _handle_run(self, request: RunRequest) -> HandlerResult:
        args = ["run", *request.tasks]
        if request.filter:
            args += ["--filter", request.filter]
        if request.dry_run:
            args.append("--dry-run=json")
        if request.continue_on_error:
            args.append("--continue")

        output = await self._turbo(args, "run", check=False)
        tasks = " ".join(request.tasks)

        if not output.success:
            failed = decode_run_failures(output.combined)
            raise ProcessFailedError(
                f"turbo run {tasks} failed with exit code {output.exit_code}"
                + (f" ({', '.join(failed)})" if failed else ""),
                exit_code=output.exit_code,
                stdout=output.stdout,
                stderr=output.stderr,
                detail={"tasks": list(request.tasks), "failed_tasks": failed},
            )

        if request.dry_run:
            plan = decode_dry_run(output.stdout)
            return f"Dry run of {tasks}: {len(plan['tasks'])} task(s) planned", {
                "tasks": list(request.tasks),
                "dry_run": True,
                "plan": plan,
            }

        return f"turbo run {tasks} succeeded", {
            "tasks": list(request.tasks),
            "dry_run": False,
            "exit_code": output.exit_code,
            "summary": decode_run_summary(output.combined),
            "stdout": output.stdout,
            "stderr": output.stderr,
            "duration_ms": round(output.duration_ms, 1),
        }

    async def _handle_graph(self, request: GraphRequest) -> HandlerResult:
        output = await self._turbo(["run", request.task, "--dry-run", "--graph"], "graph")
        return f"Task graph for {request.task}", {"task": request.task, "graph": output.stdout}

    def _workspace_root(self) -> Path:
        try:
            return find_config(self.session.workdir).parent
        except ConfigNotFoundError:
            return self.session.workdir

    async def _handle_prune(self, request: PruneRequest) -> HandlerResult:
        args = ["prune", request.scope]
        if request.out_dir:
            args += ["--out-dir", request.out_dir]
        if request.docker:
            args.append("--docker")

        output = await self._turbo(args, "prune")
        out_dir = Path(request.out_dir or DEFAULT_PRUNE_DIR).expanduser()
        if not out_dir.is_absolute():
            out_dir = self._workspace_root() / out_dir
        return f"Pruned workspace for {request.scope} into {out_dir}", {
            "scope": request.scope,
            "out_dir": str(out_dir.resolve()),
            "docker": request.docker,
            "output": output.combined.strip(),
        }

    async def _handle_query(self, request: QueryRequest) -> HandlerResult:
        output = await self._turbo(["query", request.query], "query")
        return "Query executed", {"query": request.query, "result": decode_query(output.stdout)}

    async def _handle_lint(self, request: LintRequest) -> HandlerResult:
        snapshot = self.reader.read_config(self.session.workdir)
        diagnostics = lint_snapshot(snapshot, request.packages)

        exit_code = None
        task_names = sorted({d.task_name for d in snapshot.tasks.values()})
        if task_names:
            args = ["run", *task_names, "--dry-run=json"]
            for package in request.packages:
                args += ["--filter", package]
            output = await self._turbo(args, "lint", check=False)
            exit_code = output.exit_code
            if not output.success:
                reason = _first_line(output.stderr) or _first_line(output.stdout)
                diagnostics.append(
                    Diagnostic(
                        code=VALIDATION_FAILED,
                        severity=ERROR,
                        message=reason or f"turbo exited with code {output.exit_code}",
                        source="turbo",
                    )
                )

        errors = sum(1 for d in diagnostics if d.severity == ERROR)
        warnings = sum(1 for d in diagnostics if d.severity == WARNING)
        valid = errors == 0
        message = "Configuration is valid" if valid else f"{errors} error(s) found"
        if warnings:
            message += f", {warnings} warning(s)"
        return message, {
            "valid": valid,
            "config": str(snapshot.path),
            "diagnostics": [d.to_dict() for d in diagnostics],
            "error_count": errors,
            "warning_count": warnings,
            "exit_code": exit_code,
        }

    async def _handle_info(self, request: InfoRequest) -> HandlerResult:
        workdir = self.session.workdir
        snapshot = self.reader.read_config(workdir)
        listing = await self.reader.list_packages(workdir, snapshot)

        if request.package is None:
            task_names = sorted(snapshot.tasks)
            package_names = [p.name for p in listing.packages]
            return f"{len(package_names)} package(s), {len(task_names)} task(s)", {
                "workdir": str(workdir),
                "root": str(snapshot.root),
                "config": str(snapshot.path),
                "packageManager": listing.package_manager,
                "settings": snapshot.settings.to_dict(),
                "tasks": task_names,
                "packages": package_names,
                "counts": {"tasks": len(task_names), "packages": len(package_names)},
            }

        package = listing.find(request.package)
        if package is None:
            raise InvalidInputError(
                f"Unknown package: {request.package}",
                field="package",
                detail={"known": [p.name for p in listing.packages]},
            )
        tasks = tasks_for_package(snapshot, package.name)
        return f"Package {package.name} ({len(tasks)} task(s))", {
            "package": package.to_dict(),
            "tasks": {name: task.to_dict() for name, task in tasks.items()},
        }


def tasks_for_package(snapshot: ConfigSnapshot, package: str) -> dict[str, TaskDefinition]:
    """Root plain tasks, root `package#task` entries, then the package's own overrides."""
    tasks: dict[str, TaskDefinition] = {}
    for key, definition in snapshot.tasks.items():
        owner = definition.qualified_package
        if owner is None or owner == package:
            tasks[key] = definition
    for key, definition in snapshot.flattened_tasks().items():
        if key.startswith(f"{package}#"):
            tasks[key] = definition
    return tasks
