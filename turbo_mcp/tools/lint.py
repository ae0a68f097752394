"""
Static checks over a ConfigSnapshot.

These catch the mistakes turbo rejects at run time, so `lint` can name the
offending task even when turbo's own message is terse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from turbo_mcp.models import ConfigSnapshot, TaskDefinition

ERROR = "error"
WARNING = "warning"

SELF_DEPENDENCY = "turbo:self-dependency"
PERSISTENT_DEPENDENCY = "turbo:persistent-dependency"
UNKNOWN_DEPENDENCY = "turbo:unknown-dependency"
DEPRECATED_PIPELINE = "turbo:deprecated-pipeline"
VALIDATION_FAILED = "turbo:validation-failed"


@dataclass
class Diagnostic:
    """A single lint finding."""

    code: str
    severity: str
    message: str
    task: str | None = None
    package: str | None = None
    source: str = "static"

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
            "task": self.task,
            "package": self.package,
            "source": self.source,
        }


def _resolve(dep: str, owner: str | None) -> tuple[str | None, str]:
    """
    Split a dependsOn entry into (package, task).

    `^task` targets dependencies' tasks, so it never resolves to the owner.
    """
    if dep.startswith("^"):
        return None, dep[1:]
    if "#" in dep:
        package, task = dep.split("#", 1)
        return package, task
    return owner, dep


def _is_self(dep: str, definition: TaskDefinition) -> bool:
    if dep.startswith("^"):
        return False
    package, task = _resolve(dep, definition.qualified_package)
    return task == definition.task_name and package == definition.qualified_package


def _persistent_tasks(snapshot: ConfigSnapshot) -> tuple[set[str], set[tuple[str, str]]]:
    """Bare persistent task names (root-level) and (package, task) pairs."""
    bare: set[str] = set()
    qualified: set[tuple[str, str]] = set()
    for definition in snapshot.flattened_tasks().values():
        if not definition.persistent:
            continue
        package = definition.qualified_package
        if package is None:
            bare.add(definition.task_name)
        else:
            qualified.add((package, definition.task_name))
    return bare, qualified


def check_definition(
    definition: TaskDefinition,
    known_tasks: set[str],
    persistent: tuple[set[str], set[tuple[str, str]]],
) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    bare_persistent, qualified_persistent = persistent
    package = definition.qualified_package

    for dep in definition.depends_on:
        if _is_self(dep, definition):
            diagnostics.append(
                Diagnostic(
                    code=SELF_DEPENDENCY,
                    severity=ERROR,
                    message=f"Task '{definition.name}' depends on itself via '{dep}'",
                    task=definition.name,
                    package=package,
                )
            )
            continue

        dep_package, dep_task = _resolve(dep, package)
        if dep_task and dep_task not in known_tasks:
            diagnostics.append(
                Diagnostic(
                    code=UNKNOWN_DEPENDENCY,
                    severity=WARNING,
                    message=(
                        f"Task '{definition.name}' depends on '{dep}', "
                        f"but no task '{dep_task}' is defined"
                    ),
                    task=definition.name,
                    package=package,
                )
            )
            continue

        targets_persistent = dep_task in bare_persistent or (
            dep_package is not None and (dep_package, dep_task) in qualified_persistent
        )
        if targets_persistent:
            diagnostics.append(
                Diagnostic(
                    code=PERSISTENT_DEPENDENCY,
                    severity=ERROR,
                    message=(
                        f"Task '{definition.name}' depends on persistent task '{dep}'; "
                        "persistent tasks cannot be depended on"
                    ),
                    task=definition.name,
                    package=package,
                )
            )
    return diagnostics


def lint_snapshot(snapshot: ConfigSnapshot, packages: tuple[str, ...] = ()) -> list[Diagnostic]:
    """
    Run every static rule.

    Root-level tasks are always checked. Package overrides are checked for
    all packages, or only those named in `packages`.
    """
    diagnostics: list[Diagnostic] = []
    known = snapshot.task_names()
    persistent = _persistent_tasks(snapshot)

    if snapshot.uses_legacy_pipeline:
        diagnostics.append(
            Diagnostic(
                code=DEPRECATED_PIPELINE,
                severity=WARNING,
                message=f"{snapshot.path.name} uses 'pipeline'; turbo 2 expects 'tasks'",
            )
        )

    for definition in snapshot.tasks.values():
        diagnostics.extend(check_definition(definition, known, persistent))

    for package, overrides in snapshot.package_overrides.items():
        if packages and package not in packages:
            continue
        for definition in overrides.values():
            diagnostics.extend(check_definition(definition, known, persistent))

    return diagnostics
