"""MCP tool declarations for turbo-mcp."""

from __future__ import annotations

from mcp.types import Tool

TOOLS: list[Tool] = [
    Tool(
        name="workdir",
        description="Get or set the working directory used by every other tool and resource.",
        inputSchema={
            "type": "object",
            "properties": {
                "mode": {
                    "type": "string",
                    "enum": ["get", "set"],
                    "description": "get: return the current directory. set: change it.",
                },
                "path": {
                    "type": "string",
                    "description": (
                        "Directory to switch to (required for set). "
                        "Relative paths resolve against the current directory."
                    ),
                },
            },
            "required": ["mode"],
        },
    ),
    Tool(
        name="daemon",
        description="Control the turbo daemon. status reports whether it is running.",
        inputSchema={
            "type": "object",
            "properties": {
                "mode": {
                    "type": "string",
                    "enum": ["status", "start", "stop"],
                    "description": "Daemon subcommand to run",
                },
            },
            "required": ["mode"],
        },
    ),
    Tool(
        name="run",
        description="Execute turbo tasks. Failures list the tasks that failed.",
        inputSchema={
            "type": "object",
            "properties": {
                "tasks": {
                    "type": "array",
                    "items": {"type": "string"},
                    "minItems": 1,
                    "description": "Tasks to run (e.g. ['build', 'test'])",
                },
                "filter": {
                    "type": "string",
                    "description": "Package filter (e.g. '@myapp/*' or 'web...')",
                },
                "dry_run": {
                    "type": "boolean",
                    "default": False,
                    "description": "Return the execution plan instead of running anything",
                },
                "continue_on_error": {
                    "type": "boolean",
                    "default": False,
                    "description": "Keep running other tasks after a failure",
                },
            },
            "required": ["tasks"],
        },
    ),
    Tool(
        name="graph",
        description="Show the task dependency graph (Graphviz DOT) for a task.",
        inputSchema={
            "type": "object",
            "properties": {
                "task": {
                    "type": "string",
                    "default": "build",
                    "description": "Task to graph (default: build)",
                },
            },
        },
    ),
    Tool(
        name="prune",
        description="Create a pruned subset of the monorepo for one package (e.g. Docker builds).",
        inputSchema={
            "type": "object",
            "properties": {
                "scope": {
                    "type": "string",
                    "description": "Package to prune for",
                },
                "out_dir": {
                    "type": "string",
                    "description": "Output directory (default: out)",
                },
                "docker": {
                    "type": "boolean",
                    "default": False,
                    "description": "Split output into json/ and full/ for Docker layer caching",
                },
            },
            "required": ["scope"],
        },
    ),
    Tool(
        name="query",
        description="Run a GraphQL query against turbo's repository graph (turbo query).",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "GraphQL query string, passed to turbo unmodified",
                },
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="lint",
        description="Validate turbo configuration. Findings come back as diagnostics, not errors.",
        inputSchema={
            "type": "object",
            "properties": {
                "packages": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Only check these packages (default: whole workspace)",
                },
            },
        },
    ),
    Tool(
        name="info",
        description="Summarize the workspace, or one package and the tasks that apply to it.",
        inputSchema={
            "type": "object",
            "properties": {
                "package": {
                    "type": "string",
                    "description": "Package name or workspace-relative path (optional)",
                },
            },
        },
    ),
]
