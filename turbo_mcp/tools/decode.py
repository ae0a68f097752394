"""
Decoders for turbo CLI output.

One function per action. turbo mixes human text (warnings, update notices)
with the JSON we ask for, so JSON is located rather than assumed to span the
whole stream. Anything that does not match the expected shape raises
OutputParseError, which stays contained to the request that ran it.
"""

from __future__ import annotations

import json
import re
from typing import Any

from turbo_mcp.errors import OutputParseError

# How many candidate '{' / '[' offsets to try before giving up
MAX_JSON_CANDIDATES = 64

_FAILED_SUMMARY = re.compile(r"^\s*Failed:\s+(?P<tasks>.+?)\s*$", re.MULTILINE)
_TASK_EXITED = re.compile(
    r"^\s*(?:ERROR\s+)?(?P<task>[\w@./-]+#[\w.-]+(?::[\w.-]+)*):?"
    r"\s+command\b.*?exited \((?P<code>-?\d+)\)",
    re.MULTILINE,
)
_PREFIX_ERROR = re.compile(r"^(?P<pkg>[\w@./-]+):(?P<task>[\w.-]+):\s+ERROR\b", re.MULTILINE)
_SUMMARY_TASKS = re.compile(
    r"^\s*Tasks:\s+(?P<ok>\d+) successful, (?P<total>\d+) total", re.MULTILINE
)
_SUMMARY_CACHED = re.compile(r"^\s*Cached:\s+(?P<cached>\d+) cached", re.MULTILINE)
_SUMMARY_TIME = re.compile(r"^\s*Time:\s+(?P<time>\S+)", re.MULTILINE)
_KEY_VALUE = re.compile(r"^\s*(?P<key>[A-Za-z][\w .-]*?):\s+(?P<value>\S.*?)\s*$", re.MULTILINE)


def extract_json(text: str, what: str = "output") -> Any:
    """
    Return the first JSON object or array embedded in `text`.

    Raises:
        OutputParseError: nothing decodable was found
    """
    decoder = json.JSONDecoder()
    attempts = 0
    for match in re.finditer(r"[\[{]", text):
        attempts += 1
        if attempts > MAX_JSON_CANDIDATES:
            break
        try:
            value, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        if isinstance(value, (dict, list)):
            return value
    raise OutputParseError(f"Could not find JSON in turbo {what}", stdout=text[:4000])


def decode_package_list(stdout: str) -> tuple[str | None, list[dict[str, str]]]:
    """
    Decode `turbo ls --output json`.

    Expected shape: {"packageManager": str, "packages": {"count": n, "items": [{"name", "path"}]}}
    """
    data = extract_json(stdout, "ls output")
    if not isinstance(data, dict):
        raise OutputParseError("turbo ls output is not an object", stdout=stdout[:4000])

    packages = data.get("packages")
    items = packages.get("items") if isinstance(packages, dict) else packages
    if not isinstance(items, list):
        raise OutputParseError("turbo ls output has no package list", stdout=stdout[:4000])

    decoded = []
    for item in items:
        if not isinstance(item, dict) or "name" not in item:
            raise OutputParseError(f"Malformed package entry: {item!r}", stdout=stdout[:4000])
        decoded.append({"name": str(item["name"]), "path": str(item.get("path", ""))})

    package_manager = data.get("packageManager")
    return (str(package_manager) if package_manager else None), decoded


def decode_key_values(text: str) -> dict[str, str]:
    """Parse `Key: value` lines (daemon status style) into snake_case keys."""
    details = {}
    for match in _KEY_VALUE.finditer(text):
        key = re.sub(r"[^a-z0-9]+", "_", match.group("key").strip().lower()).strip("_")
        details[key] = match.group("value")
    return details


def decode_daemon_status(exit_code: int, stdout: str, stderr: str) -> dict[str, Any]:
    """
    Decode `turbo daemon status`.

    A daemon that is not running is a normal answer: turbo exits non-zero
    and says so on stderr.
    """
    text = "\n".join(part for part in (stdout.strip(), stderr.strip()) if part)
    lowered = text.lower()
    not_running = any(
        marker in lowered for marker in ("not running", "no daemon", "unable to connect")
    )
    running = exit_code == 0 and not not_running
    return {
        "running": running,
        "status": "running" if running else "not running",
        "exit_code": exit_code,
        "message": text,
        "details": decode_key_values(stdout) if running else {},
    }


def decode_run_failures(text: str) -> list[str]:
    """Task ids (`pkg#task`) that turbo reported as failed, in first-seen order."""
    failed: list[str] = []

    def add(task: str) -> None:
        task = task.strip()
        if task and task not in failed:
            failed.append(task)

    for match in _FAILED_SUMMARY.finditer(text):
        for task in match.group("tasks").split(","):
            add(task)
    for match in _TASK_EXITED.finditer(text):
        add(match.group("task"))
    for match in _PREFIX_ERROR.finditer(text):
        add(f"{match.group('pkg')}#{match.group('task')}")
    return failed


def decode_run_summary(text: str) -> dict[str, Any]:
    """Pick the `Tasks:` / `Cached:` / `Time:` footer out of `turbo run` output."""
    summary: dict[str, Any] = {}
    tasks = _SUMMARY_TASKS.search(text)
    if tasks:
        summary["successful"] = int(tasks.group("ok"))
        summary["total"] = int(tasks.group("total"))
    cached = _SUMMARY_CACHED.search(text)
    if cached:
        summary["cached"] = int(cached.group("cached"))
    elapsed = _SUMMARY_TIME.search(text)
    if elapsed:
        summary["time"] = elapsed.group("time")
        summary["full_turbo"] = ">>> FULL TURBO" in text
    return summary


def decode_dry_run(stdout: str) -> dict[str, Any]:
    """Decode `turbo run ... --dry-run=json` into a compact execution plan."""
    data = extract_json(stdout, "dry run")
    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        raise OutputParseError("turbo dry run output has no task list", stdout=stdout[:4000])

    plan = []
    for task in data["tasks"]:
        if not isinstance(task, dict):
            continue
        cache = task.get("cache")
        plan.append(
            {
                "taskId": task.get("taskId"),
                "task": task.get("task"),
                "package": task.get("package"),
                "directory": task.get("directory"),
                "command": task.get("command"),
                "dependencies": task.get("dependencies") or [],
                "dependents": task.get("dependents") or [],
                "cacheStatus": cache.get("status") if isinstance(cache, dict) else None,
            }
        )
    return {
        "turboVersion": data.get("turboVersion"),
        "packages": data.get("packages") or [],
        "tasks": plan,
    }


def decode_query(stdout: str) -> Any:
    """Decode `turbo query` output; the JSON answer is returned as-is."""
    text = stdout.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return extract_json(stdout, "query output")
