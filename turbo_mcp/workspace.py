"""
Workspace state reader.

Locates turbo.json by walking up from the session directory, parses it (and
any per-package turbo.json files) into a ConfigSnapshot, and lists packages
through `turbo ls`.

Nothing here is cached: every call re-reads the files, so answers always
reflect the workspace as it is on disk right now.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from turbo_mcp import jsonc
from turbo_mcp.errors import (
    ConfigNotFoundError,
    ConfigParseError,
    ProcessFailedError,
    WorkspaceQueryFailedError,
)
from turbo_mcp.models import (
    ConfigSnapshot,
    PackageInfo,
    RootSettings,
    TaskDefinition,
    WorkspaceListing,
)
from turbo_mcp.process import ProcessRunner
from turbo_mcp.tools.decode import decode_package_list

logger = logging.getLogger("turbo-mcp.workspace")

CONFIG_NAMES = ("turbo.json", "turbo.jsonc")
SKIP_DIRS = {"node_modules", ".git", ".turbo"}


def find_config_in(directory: Path) -> Path | None:
    """Return the turbo config file directly inside `directory`, if any."""
    for name in CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def find_config(start: Path) -> Path:
    """
    Find the workspace root turbo.json at or above `start`.

    Package-level configs (those with `extends`) are skipped, so a session
    inside a package still resolves to the root config.

    Raises:
        ConfigNotFoundError: if the filesystem root is reached without a match
    """
    current = start.resolve()
    for directory in (current, *current.parents):
        found = find_config_in(directory)
        if found is not None and not _is_package_config(found):
            return found
    raise ConfigNotFoundError(
        f"No turbo.json found in {current} or any parent directory",
        detail={"start": str(current)},
    )


def _read_jsonc(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigParseError(f"Cannot read {path}: {e}", path=str(path)) from e
    data = jsonc.loads(text, path=str(path))
    if not isinstance(data, dict):
        raise ConfigParseError(
            f"{path}: top level must be an object", path=str(path), line=1, column=1
        )
    return data


def _is_package_config(path: Path) -> bool:
    try:
        data = _read_jsonc(path)
    except ConfigParseError:
        # unparseable; let read_config report it against this file
        return False
    return "extends" in data


def _read_json_file(path: Path) -> dict[str, Any]:
    """Read package.json leniently; unreadable files count as empty."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"skipping unreadable {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _parse_tasks(
    data: dict[str, Any], package: str | None = None
) -> tuple[dict[str, TaskDefinition], bool]:
    """Parse the `tasks` object, falling back to turbo 1.x `pipeline`."""
    legacy = "tasks" not in data and "pipeline" in data
    raw_tasks = data.get("pipeline" if legacy else "tasks") or {}
    if not isinstance(raw_tasks, dict):
        raw_tasks = {}
    tasks = {
        name: TaskDefinition.from_dict(name, body, package=package)
        for name, body in raw_tasks.items()
    }
    return tasks, legacy


def workspace_globs(root: Path) -> list[str]:
    """Workspace globs from package.json `workspaces` and pnpm-workspace.yaml."""
    globs: list[str] = []

    workspaces = _read_json_file(root / "package.json").get("workspaces")
    if isinstance(workspaces, dict):
        workspaces = workspaces.get("packages")
    if isinstance(workspaces, list):
        globs.extend(str(g) for g in workspaces)

    pnpm = root / "pnpm-workspace.yaml"
    if pnpm.is_file():
        try:
            data = yaml.safe_load(pnpm.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"ignoring unreadable {pnpm}: {e}")
            data = {}
        packages = data.get("packages") if isinstance(data, dict) else None
        if isinstance(packages, list):
            globs.extend(str(g) for g in packages)

    return globs


def _expand(root: Path, pattern: str) -> set[Path]:
    pattern = pattern.strip().rstrip("/")
    if not pattern:
        return set()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    if any(ch in pattern for ch in "*?["):
        matches = set(root.glob(pattern))
    else:
        matches = {root / pattern}
    return {
        m
        for m in matches
        if m.is_dir() and not SKIP_DIRS.intersection(m.relative_to(root).parts)
    }


def discover_package_dirs(root: Path) -> list[Path]:
    """Directories matched by the workspace globs that hold a package.json."""
    included: set[Path] = set()
    excluded: set[Path] = set()
    for pattern in workspace_globs(root):
        if pattern.startswith("!"):
            excluded |= _expand(root, pattern[1:])
        else:
            included |= _expand(root, pattern)
    return sorted(d for d in included - excluded if (d / "package.json").is_file())


def read_config(workdir: Path) -> ConfigSnapshot:
    """
    Build a fresh ConfigSnapshot for the workspace containing `workdir`.

    Raises:
        ConfigNotFoundError: no turbo.json at or above workdir
        ConfigParseError: root or package turbo.json is malformed
    """
    path = find_config(workdir)
    data = _read_jsonc(path)
    tasks, legacy = _parse_tasks(data)

    overrides: dict[str, dict[str, TaskDefinition]] = {}
    override_paths: dict[str, Path] = {}
    for package_dir in discover_package_dirs(path.parent):
        package_config = find_config_in(package_dir)
        if package_config is None or package_config == path:
            continue
        name = _read_json_file(package_dir / "package.json").get("name") or package_dir.name
        package_tasks, _ = _parse_tasks(_read_jsonc(package_config), package=str(name))
        overrides[str(name)] = package_tasks
        override_paths[str(name)] = package_config

    logger.debug(f"read {path}: {len(tasks)} root tasks, {len(overrides)} package configs")
    return ConfigSnapshot(
        path=path,
        settings=RootSettings.from_dict(data),
        tasks=tasks,
        package_overrides=overrides,
        package_config_paths=override_paths,
        uses_legacy_pipeline=legacy,
        raw=data,
    )


def read_scripts(package_dir: Path) -> list[str]:
    scripts = _read_json_file(package_dir / "package.json").get("scripts")
    return sorted(scripts) if isinstance(scripts, dict) else []


class WorkspaceReader:
    """Reads config from disk and package listings from the turbo CLI."""

    def __init__(self, runner: ProcessRunner, binary: str = "turbo", timeout: float = 60):
        self.runner = runner
        self.binary = binary
        self.timeout = timeout

    def read_config(self, workdir: Path) -> ConfigSnapshot:
        return read_config(workdir)

    async def list_packages(
        self, workdir: Path, snapshot: ConfigSnapshot | None = None
    ) -> WorkspaceListing:
        """
        Run `turbo ls --output json` and decode it into PackageInfo entries.

        When a snapshot is given, each package's scripts are narrowed to
        those that share a name with a defined task.

        Raises:
            WorkspaceQueryFailedError: turbo exited non-zero
            OutputParseError: turbo's output was not the expected JSON
        """
        try:
            output = await self.runner.run(
                self.binary,
                ["ls", "--output", "json"],
                cwd=workdir,
                timeout=self.timeout,
            )
        except ProcessFailedError as e:
            raise WorkspaceQueryFailedError(
                f"turbo ls failed with exit code {e.exit_code}",
                detail={"exit_code": e.exit_code, "stderr": e.stderr.strip()},
            ) from e

        package_manager, items = decode_package_list(output.stdout)
        root = snapshot.root if snapshot is not None else workdir
        task_names = snapshot.task_names() if snapshot is not None else None

        packages = []
        for item in items:
            absolute = (root / item["path"]).resolve()
            scripts = read_scripts(absolute)
            if task_names is not None:
                scripts = [s for s in scripts if s in task_names]
            packages.append(
                PackageInfo(
                    name=item["name"],
                    path=item["path"],
                    absolute_path=absolute,
                    scripts=tuple(scripts),
                )
            )
        return WorkspaceListing(package_manager=package_manager, packages=tuple(packages))
