"""turbo-mcp - Model Context Protocol server for Turborepo workspaces."""

__version__ = "0.3.0"
