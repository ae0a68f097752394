"""CLI for turbo-mcp: run the server, inspect its tools, make one-off calls."""

from __future__ import annotations

import asyncio
import json
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
import typer

from turbo_mcp.config import TurboMcpConfig, load_config
from turbo_mcp.errors import TurboMcpError

app = typer.Typer(
    name="turbo-mcp",
    help="Model Context Protocol server for Turborepo workspaces",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to turbo-mcp.toml")
WORKDIR_OPTION = typer.Option(None, "--workdir", "-w", help="Workspace directory (default: cwd)")


def _load(config_path: Optional[str], workdir: Optional[str] = None) -> TurboMcpConfig:
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        err_console.print(f"[red]✗[/] Invalid configuration: {escape(str(e))}")
        raise typer.Exit(2) from None
    if workdir:
        config.server.workdir = workdir
    return config


def _server(config: TurboMcpConfig):
    from turbo_mcp.observability import setup_logging
    from turbo_mcp.server import TurboMcpServer

    setup_logging(config, "turbo-mcp")
    try:
        return TurboMcpServer(config)
    except TurboMcpError as e:
        err_console.print(f"[red]✗[/] {escape(e.message)}")
        raise typer.Exit(2) from None


@app.command()
def serve(
    config_path: Optional[str] = CONFIG_OPTION,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", "-l", help="Override log level (debug|info|warning|error)"
    ),
) -> None:
    """Run the MCP server on stdio."""
    from turbo_mcp.server import serve as run_server

    config = _load(config_path)
    if log_level:
        config.server.log_level = log_level
        try:
            config.validate()
        except ValueError as e:
            err_console.print(f"[red]✗[/] {escape(str(e))}")
            raise typer.Exit(2) from None
    try:
        run_server(config)
    except TurboMcpError as e:
        err_console.print(f"[red]✗[/] {escape(e.message)}")
        raise typer.Exit(2) from None


@app.command()
def tools() -> None:
    """List the tools the server exposes."""
    from turbo_mcp.tools.schemas import TOOLS

    table = Table(title="turbo-mcp tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Parameters")
    table.add_column("Description")
    for tool in TOOLS:
        props = tool.inputSchema.get("properties", {})
        required = set(tool.inputSchema.get("required", []))
        params = ", ".join(f"{p}*" if p in required else p for p in props)
        table.add_row(tool.name, params, tool.description or "")
    console.print(table)


@app.command()
def resources() -> None:
    """List the resources the server exposes."""
    from turbo_mcp.resources import RESOURCES

    table = Table(title="turbo-mcp resources")
    table.add_column("URI", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    for resource in RESOURCES:
        table.add_row(str(resource.uri), resource.name, resource.description or "")
    console.print(table)


@app.command()
def read(
    uri: str = typer.Argument(..., help="Resource URI, e.g. turbo://tasks"),
    workdir: Optional[str] = WORKDIR_OPTION,
    config_path: Optional[str] = CONFIG_OPTION,
) -> None:
    """Read one resource and print its JSON."""
    server = _server(_load(config_path, workdir))
    try:
        result = asyncio.run(server.resources.read(uri))
    except TurboMcpError as e:
        err_console.print(f"[red]✗[/] {e.code}: {escape(e.message)}")
        if e.detail:
            err_console.print_json(json.dumps(e.detail))
        raise typer.Exit(1) from None
    console.print_json(result.text)


@app.command()
def call(
    tool: str = typer.Argument(..., help="Tool name, e.g. info"),
    args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object"),
    workdir: Optional[str] = WORKDIR_OPTION,
    config_path: Optional[str] = CONFIG_OPTION,
) -> None:
    """Dispatch one tool call and print the result envelope."""
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as e:
        err_console.print(f"[red]✗[/] --args is not valid JSON: {escape(str(e))}")
        raise typer.Exit(2) from None

    server = _server(_load(config_path, workdir))
    result = asyncio.run(server.dispatcher.dispatch(tool, arguments))
    console.print_json(json.dumps(result))
    if not result["ok"]:
        raise typer.Exit(1)


@app.command()
def lsp(
    binary: Optional[str] = typer.Option(None, "--binary", "-b", help="Language server binary"),
    config_path: Optional[str] = CONFIG_OPTION,
) -> None:
    """Run the companion Turborepo language server on stdio."""
    from turbo_mcp.lsp import run_lsp

    config = _load(config_path)
    try:
        code = run_lsp(binary or config.turbo.lsp_binary)
    except TurboMcpError as e:
        err_console.print(f"[red]✗[/] {escape(e.message)}")
        raise typer.Exit(127) from None
    raise typer.Exit(code)


def main() -> None:
    """Entry point for turbo-mcp CLI."""
    app()


if __name__ == "__main__":
    main()
