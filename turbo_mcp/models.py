"""
Workspace data model.

Immutable snapshots of turbo.json and the package listing. Serialized with
turbo's own camelCase keys so payloads read like the config file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

DEFAULT_CACHE_DIR = ".turbo/cache"


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(v) for v in value)


def _frozen(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class TaskDefinition:
    """One entry of a `tasks` (or legacy `pipeline`) object."""

    name: str
    package: str | None = None
    depends_on: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    inputs: tuple[str, ...] = ()
    cache: bool = True
    persistent: bool = False
    env: tuple[str, ...] = ()
    pass_through_env: tuple[str, ...] = ()
    output_logs: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_dict(cls, name: str, data: Mapping[str, Any], package: str | None = None):
        data = data if isinstance(data, Mapping) else {}
        output_logs = data.get("outputLogs", data.get("outputMode"))
        return cls(
            name=name,
            package=package,
            depends_on=_str_tuple(data.get("dependsOn")),
            outputs=_str_tuple(data.get("outputs")),
            inputs=_str_tuple(data.get("inputs")),
            cache=bool(data.get("cache", True)),
            persistent=bool(data.get("persistent", False)),
            env=_str_tuple(data.get("env")),
            pass_through_env=_str_tuple(data.get("passThroughEnv")),
            output_logs=str(output_logs) if output_logs is not None else None,
            raw=_frozen(data),
        )

    @property
    def task_name(self) -> str:
        """Name without a `pkg#` qualifier."""
        return self.name.split("#", 1)[1] if "#" in self.name else self.name

    @property
    def qualified_package(self) -> str | None:
        """Package this definition targets, from ownership or a `pkg#task` key."""
        if self.package is not None:
            return self.package
        if "#" in self.name:
            return self.name.split("#", 1)[0]
        return None

    def merged_with(self, override: TaskDefinition) -> TaskDefinition:
        """Layer a package override over this definition; override keys win."""
        return TaskDefinition.from_dict(
            self.name, {**self.raw, **override.raw}, package=override.package or self.package
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "package": self.package,
            "dependsOn": list(self.depends_on),
            "outputs": list(self.outputs),
            "inputs": list(self.inputs),
            "cache": self.cache,
            "persistent": self.persistent,
            "env": list(self.env),
            "passThroughEnv": list(self.pass_through_env),
        }
        if self.output_logs is not None:
            data["outputLogs"] = self.output_logs
        return data


@dataclass(frozen=True)
class RootSettings:
    """Root-level turbo.json settings."""

    cache_dir: str = DEFAULT_CACHE_DIR
    daemon: bool | None = None
    ui: str | None = None
    concurrency: str | None = None
    env_mode: str | None = None
    remote_cache: Mapping[str, Any] = field(default_factory=dict)
    global_dependencies: tuple[str, ...] = ()
    global_env: tuple[str, ...] = ()
    global_pass_through_env: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RootSettings:
        daemon = data.get("daemon")
        concurrency = data.get("concurrency")
        remote = data.get("remoteCache")
        return cls(
            cache_dir=str(data.get("cacheDir") or DEFAULT_CACHE_DIR),
            daemon=bool(daemon) if daemon is not None else None,
            ui=data.get("ui"),
            concurrency=str(concurrency) if concurrency is not None else None,
            env_mode=data.get("envMode"),
            remote_cache=_frozen(remote if isinstance(remote, Mapping) else {}),
            global_dependencies=_str_tuple(data.get("globalDependencies")),
            global_env=_str_tuple(data.get("globalEnv")),
            global_pass_through_env=_str_tuple(data.get("globalPassThroughEnv")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "cacheDir": self.cache_dir,
            "daemon": self.daemon,
            "ui": self.ui,
            "concurrency": self.concurrency,
            "envMode": self.env_mode,
            "remoteCache": dict(self.remote_cache),
            "globalDependencies": list(self.global_dependencies),
            "globalEnv": list(self.global_env),
            "globalPassThroughEnv": list(self.global_pass_through_env),
        }


@dataclass(frozen=True)
class ConfigSnapshot:
    """Parsed turbo.json plus per-package overrides at one point in time."""

    path: Path
    settings: RootSettings
    tasks: Mapping[str, TaskDefinition]
    package_overrides: Mapping[str, Mapping[str, TaskDefinition]] = field(default_factory=dict)
    package_config_paths: Mapping[str, Path] = field(default_factory=dict)
    uses_legacy_pipeline: bool = False
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def root(self) -> Path:
        return self.path.parent

    def flattened_tasks(self) -> dict[str, TaskDefinition]:
        """
        Root tasks keyed verbatim, package overrides keyed `pkg#task`.

        An override whose qualified key is already defined at root is merged
        over the root entry, so every key appears exactly once.
        """
        flat: dict[str, TaskDefinition] = dict(self.tasks)
        for package, overrides in self.package_overrides.items():
            for task_name, definition in overrides.items():
                key = f"{package}#{task_name}"
                qualified = TaskDefinition.from_dict(key, definition.raw, package=package)
                if key in flat:
                    flat[key] = flat[key].merged_with(qualified)
                else:
                    flat[key] = qualified
        return flat

    def task_names(self) -> set[str]:
        """Every bare task name defined anywhere (root or package)."""
        names = {d.task_name for d in self.tasks.values()}
        for overrides in self.package_overrides.values():
            names.update(overrides.keys())
        return names

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "root": str(self.root),
            "settings": self.settings.to_dict(),
            "usesLegacyPipeline": self.uses_legacy_pipeline,
            "tasks": {name: task.to_dict() for name, task in self.tasks.items()},
            "packageOverrides": {
                package: {name: task.to_dict() for name, task in overrides.items()}
                for package, overrides in self.package_overrides.items()
            },
            "packageConfigPaths": {p: str(path) for p, path in self.package_config_paths.items()},
            "raw": _plain(self.raw),
        }


@dataclass(frozen=True)
class PackageInfo:
    """One workspace package as reported by `turbo ls`."""

    name: str
    path: str
    absolute_path: Path
    scripts: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "absolutePath": str(self.absolute_path),
            "scripts": list(self.scripts),
        }


def _plain(value: Any) -> Any:
    """Turn mapping proxies back into plain dicts for json.dumps."""
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class WorkspaceListing:
    """Decoded `turbo ls` result."""

    package_manager: str | None
    packages: tuple[PackageInfo, ...] = ()

    def find(self, ref: str) -> PackageInfo | None:
        """Look a package up by name or by its workspace-relative path."""
        wanted = ref.strip().rstrip("/")
        for pkg in self.packages:
            if pkg.name == wanted or pkg.path.rstrip("/") == wanted:
                return pkg
        return None
