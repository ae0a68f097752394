"""
Read-only resources.

Each URI is a projection of a freshly read ConfigSnapshot (or package
listing). The only subprocesses are `turbo ls` for packages and
`turbo daemon status` for cache.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import json
import logging
from typing import Any

from mcp.types import Resource

from turbo_mcp.errors import ResourceNotFoundError
from turbo_mcp.process import ProcessRunner
from turbo_mcp.session import Session
from turbo_mcp.tools.decode import decode_daemon_status
from turbo_mcp.workspace import WorkspaceReader

logger = logging.getLogger("turbo-mcp.resources")

JSON_MIME = "application/json"

URI_CONFIG = "turbo://config"
URI_TASKS = "turbo://tasks"
URI_PACKAGES = "turbo://packages"
URI_CACHE = "turbo://cache"

RESOURCES: list[Resource] = [
    Resource(
        uri=URI_CONFIG,
        name="Turbo Config",
        description="Parsed turbo.json: root settings, tasks and per-package overrides",
        mimeType=JSON_MIME,
    ),
    Resource(
        uri=URI_TASKS,
        name="Task List",
        description="Every task definition; package overrides are keyed pkg#task",
        mimeType=JSON_MIME,
    ),
    Resource(
        uri=URI_PACKAGES,
        name="Packages",
        description="Workspace packages with paths and task scripts (turbo ls)",
        mimeType=JSON_MIME,
    ),
    Resource(
        uri=URI_CACHE,
        name="Cache",
        description="Cache directory, remote cache settings, task cache flags, daemon status",
        mimeType=JSON_MIME,
    ),
]


@dataclass
class ResourceResult:
    uri: str
    mime_type: str
    text: str


class ResourceProvider:
    """Resolves resource URIs against the session's workspace."""

    def __init__(
        self,
        session: Session,
        reader: WorkspaceReader,
        runner: ProcessRunner,
        binary: str = "turbo",
        daemon_timeout: float = 30,
    ):
        self.session = session
        self.reader = reader
        self.runner = runner
        self.binary = binary
        self.daemon_timeout = daemon_timeout
        self._readers: dict[str, Callable[[], Awaitable[Any]]] = {
            URI_CONFIG: self._config,
            URI_TASKS: self._tasks,
            URI_PACKAGES: self._packages,
            URI_CACHE: self._cache,
        }

    @property
    def uris(self) -> list[str]:
        return list(self._readers)

    async def read(self, uri: str) -> ResourceResult:
        """
        Build the payload for `uri`.

        Raises:
            ResourceNotFoundError: unknown URI
            TurboMcpError: whatever the underlying read raised
        """
        read = self._readers.get(uri)
        if read is None:
            raise ResourceNotFoundError(
                f"Unknown resource: {uri}", detail={"uri": uri, "available": self.uris}
            )
        payload = await read()
        logger.debug(f"read {uri} in {self.session.workdir}")
        return ResourceResult(uri=uri, mime_type=JSON_MIME, text=json.dumps(payload, indent=2))

    async def _config(self) -> dict[str, Any]:
        return self.reader.read_config(self.session.workdir).to_dict()

    async def _tasks(self) -> dict[str, Any]:
        snapshot = self.reader.read_config(self.session.workdir)
        return {name: task.to_dict() for name, task in snapshot.flattened_tasks().items()}

    async def _packages(self) -> list[dict[str, Any]]:
        workdir = self.session.workdir
        snapshot = self.reader.read_config(workdir)
        listing = await self.reader.list_packages(workdir, snapshot)
        return [p.to_dict() for p in listing.packages]

    async def _cache(self) -> dict[str, Any]:
        workdir = self.session.workdir
        snapshot = self.reader.read_config(workdir)
        settings = snapshot.settings

        output = await self.runner.run(
            self.binary,
            ["daemon", "status"],
            cwd=workdir,
            timeout=self.daemon_timeout,
            check=False,
        )
        return {
            "cacheDir": settings.cache_dir,
            "cacheDirAbsolute": str((snapshot.root / settings.cache_dir).resolve()),
            "remoteCache": dict(settings.remote_cache),
            "daemon": {
                "enabled": settings.daemon,
                "status": decode_daemon_status(output.exit_code, output.stdout, output.stderr),
            },
            "tasks": {
                name: {"cache": task.cache, "outputs": list(task.outputs)}
                for name, task in snapshot.flattened_tasks().items()
            },
        }
