#!/usr/bin/env python3
"""
turbo-mcp Server - Model Context Protocol interface for Turborepo workspaces.

Supports stdio transport for MCP clients.
Run with: python -m turbo_mcp

Resources: turbo://config, turbo://tasks, turbo://packages, turbo://cache
Tools: workdir, daemon, run, graph, prune, query, lint, info
"""  # noqa: I001

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from typing import Any

from turbo_mcp import __version__
from turbo_mcp.config import LOG_LEVELS, TurboMcpConfig, load_config
from turbo_mcp.errors import InvalidInputError, ResourceNotFoundError, TurboMcpError
from turbo_mcp.observability import ObservabilityContext, setup_logging
from turbo_mcp.process import ProcessRunner
from turbo_mcp.prompts import INSTRUCTIONS
from turbo_mcp.resources import RESOURCES, ResourceProvider
from turbo_mcp.session import Session
from turbo_mcp.tools.dispatcher import ToolDispatcher
from turbo_mcp.tools.schemas import TOOLS
from turbo_mcp.workspace import WorkspaceReader
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, ErrorData, Resource, TextContent, Tool

logger = logging.getLogger("turbo-mcp")

# JSON-RPC code MCP uses for an unknown resource
RESOURCE_NOT_FOUND = -32002


def _error_data(error: TurboMcpError) -> ErrorData:
    if isinstance(error, ResourceNotFoundError):
        code = RESOURCE_NOT_FOUND
    elif isinstance(error, InvalidInputError):
        code = INVALID_PARAMS
    else:
        code = INTERNAL_ERROR
    return ErrorData(code=code, message=error.message, data=error.to_dict())


class TurboMcpServer:
    """turbo-mcp server implementation."""

    def __init__(self, config: TurboMcpConfig, runner: ProcessRunner | None = None):
        self.config = config
        self.server = Server("turbo-mcp", version=__version__, instructions=INSTRUCTIONS)
        self.obs = ObservabilityContext(config)

        self.session = Session(config.server.workdir or None)
        self.runner = runner or ProcessRunner(env=config.turbo.env)
        self.reader = WorkspaceReader(
            self.runner,
            binary=config.turbo.binary,
            timeout=config.timeouts.for_action("query"),
        )
        self.dispatcher = ToolDispatcher(
            self.session, config, runner=self.runner, reader=self.reader
        )
        self.resources = ResourceProvider(
            self.session,
            self.reader,
            self.runner,
            binary=config.turbo.binary,
            daemon_timeout=config.timeouts.for_action("daemon"),
        )
        self.tools: list[Tool] = list(TOOLS)

        # The SDK runs each incoming request as its own task. Everything that
        # reads or writes the session goes through this lock, one at a time.
        self._lock = asyncio.Lock()

        self._register_handlers()
        logger.info(f"turbo-mcp server initialized (workdir={self.session.workdir})")

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            logger.debug("list_tools called")
            return self.tools

        # requests.parse_request is the only validator, so bad input still gets an envelope
        @self.server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self.handle_call_tool(name, arguments)

        @self.server.list_resources()
        async def list_resources() -> list[Resource]:
            logger.debug("list_resources called")
            return list(RESOURCES)

        @self.server.read_resource()
        async def read_resource(uri: Any) -> list[ReadResourceContents]:
            return await self.handle_read_resource(str(uri))

    async def handle_call_tool(
        self, name: str, arguments: dict[str, Any] | None
    ) -> list[TextContent]:
        """Run one tool call under the session lock and encode its envelope."""
        cid = self.obs.correlation_id()
        logger.info(f"call_tool: {name}", extra={"correlation_id": cid, "tool": name})

        async with self._lock:
            start_time = time.time()
            result = await self.dispatcher.dispatch(name, arguments)
            latency_ms = (time.time() - start_time) * 1000

        success = bool(result.get("ok"))
        self.obs.record(name, latency_ms=latency_ms, success=success)
        logger.info(
            f"call_tool done: {name}",
            extra={
                "correlation_id": cid,
                "tool": name,
                "latency_ms": round(latency_ms, 1),
                "status": "ok" if success else "error",
                "error": None if success else result["error"]["code"],
            },
        )
        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    async def handle_read_resource(self, uri: str) -> list[ReadResourceContents]:
        """
        Read one resource under the session lock.

        Raises:
            McpError: carrying the typed error code and detail
        """
        cid = self.obs.correlation_id()
        logger.info(f"read_resource: {uri}", extra={"correlation_id": cid, "uri": uri})

        async with self._lock:
            start_time = time.time()
            try:
                result = await self.resources.read(uri)
            except TurboMcpError as e:
                latency_ms = (time.time() - start_time) * 1000
                self.obs.record(uri, latency_ms=latency_ms, success=False)
                logger.warning(
                    f"read_resource failed: {uri}: [{e.code}] {e.message}",
                    extra={"correlation_id": cid, "uri": uri, "status": "error", "error": e.code},
                )
                raise McpError(_error_data(e)) from e
            except Exception as e:
                self.obs.record(uri, latency_ms=(time.time() - start_time) * 1000, success=False)
                logger.exception(f"read_resource {uri}: unexpected error")
                raise McpError(
                    ErrorData(code=INTERNAL_ERROR, message=f"Internal error: {e}")
                ) from e
            latency_ms = (time.time() - start_time) * 1000

        self.obs.record(uri, latency_ms=latency_ms, success=True)
        logger.info(
            f"read_resource done: {uri}",
            extra={
                "correlation_id": cid,
                "uri": uri,
                "latency_ms": round(latency_ms, 1),
                "status": "ok",
            },
        )
        return [ReadResourceContents(content=result.text, mime_type=result.mime_type)]

    async def run(self):
        """Run the server with stdio transport."""
        logger.info("Starting turbo-mcp server (stdio transport)")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            if self.obs.enabled:
                logger.info(f"metrics: {json.dumps(self.obs.get_stats())}")


def serve(config: TurboMcpConfig) -> None:
    """Set up logging and run the stdio server until the client disconnects."""
    setup_logging(config, "turbo-mcp")
    logger.info(
        f"Config loaded: turbo={config.turbo.binary}, workdir={config.server.workdir or '(cwd)'}"
    )
    logger.info(
        f"Observability: log_format={config.observability.log_format}, "
        f"metrics={config.observability.metrics_enabled}"
    )
    server = TurboMcpServer(config)
    asyncio.run(server.run())


def main():
    """Entry point for the turbo-mcp server."""
    import argparse

    parser = argparse.ArgumentParser(description="turbo-mcp Server")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to turbo-mcp.toml config file",
        default=None,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        choices=list(LOG_LEVELS),
        default=None,
        help="Override log level",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"turbo-mcp: invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    if args.log_level:
        config.server.log_level = args.log_level

    try:
        serve(config)
    except TurboMcpError as e:
        # only reachable at startup, e.g. a configured workdir that does not exist
        print(f"turbo-mcp: {e.message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
