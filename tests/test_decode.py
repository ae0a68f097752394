"""Tests for turbo output decoders."""

import json

import pytest

from turbo_mcp.errors import OutputParseError
from turbo_mcp.tools.decode import (
    decode_daemon_status,
    decode_dry_run,
    decode_package_list,
    decode_query,
    decode_run_failures,
    decode_run_summary,
    extract_json,
)


def test_extract_json_skips_leading_noise():
    text = "• Packages in scope: [web] {not json}\n" + json.dumps({"a": [1]})
    assert extract_json(text) == {"a": [1]}


def test_extract_json_raises_without_json():
    with pytest.raises(OutputParseError, match="Could not find JSON"):
        extract_json("no json here", "ls output")


def test_package_list_accepts_flat_list():
    manager, items = decode_package_list(json.dumps({"packages": [{"name": "a", "path": "pkgs/a"}]}))
    assert manager is None
    assert items == [{"name": "a", "path": "pkgs/a"}]


def test_package_list_rejects_nameless_entries():
    with pytest.raises(OutputParseError, match="Malformed"):
        decode_package_list(json.dumps({"packages": {"items": [{"path": "x"}]}}))


def test_run_failures_from_summary_and_task_lines():
    text = """
web:build: cache miss, executing 1a2b
web:build: ERROR: command finished with error: command (/repo/apps/web) pnpm run build exited (1)
web#build: command (/repo/apps/web) /usr/bin/pnpm run build exited (1)

 Tasks:    1 successful, 3 total
Cached:    0 cached, 3 total
  Time:    2.1s
Failed:    web#build, docs#test:unit
"""
    assert decode_run_failures(text) == ["web#build", "docs#test:unit"]


def test_run_failures_error_prefixed_line():
    text = "ERROR  @repo/ui#lint: command (/r/packages/ui) npm run lint exited (2)"
    assert decode_run_failures(text) == ["@repo/ui#lint"]


def test_run_failures_empty_when_nothing_matches():
    assert decode_run_failures("something went wrong") == []


def test_run_summary():
    text = " Tasks:    4 successful, 4 total\nCached:    4 cached, 4 total\n  Time:    88ms >>> FULL TURBO\n"
    assert decode_run_summary(text) == {
        "successful": 4,
        "total": 4,
        "cached": 4,
        "time": "88ms",
        "full_turbo": True,
    }


def test_daemon_status_not_running_is_normal():
    status = decode_daemon_status(1, "", "  x Turbo daemon is not running\n")
    assert status["running"] is False
    assert status["status"] == "not running"
    assert status["exit_code"] == 1
    assert "not running" in status["message"]


def test_daemon_status_running_details():
    stdout = "Daemon log file: /tmp/turbo/daemon.log\nDaemon uptime: 12s\n"
    status = decode_daemon_status(0, stdout, "")
    assert status["running"] is True
    assert status["details"] == {"daemon_log_file": "/tmp/turbo/daemon.log", "daemon_uptime": "12s"}


def test_dry_run_plan():
    stdout = json.dumps(
        {
            "turboVersion": "2.3.0",
            "packages": ["web"],
            "tasks": [
                {
                    "taskId": "web#build",
                    "task": "build",
                    "package": "web",
                    "directory": "apps/web",
                    "command": "next build",
                    "dependencies": ["@repo/ui#build"],
                    "dependents": [],
                    "cache": {"status": "MISS"},
                }
            ],
        }
    )
    plan = decode_dry_run(stdout)
    assert plan["turboVersion"] == "2.3.0"
    assert plan["tasks"] == [
        {
            "taskId": "web#build",
            "task": "build",
            "package": "web",
            "directory": "apps/web",
            "command": "next build",
            "dependencies": ["@repo/ui#build"],
            "dependents": [],
            "cacheStatus": "MISS",
        }
    ]


def test_dry_run_without_tasks_is_parse_error():
    with pytest.raises(OutputParseError):
        decode_dry_run(json.dumps({"packages": []}))


def test_query_returns_answer_as_is():
    answer = {"data": {"packages": {"items": [{"name": "web"}]}}}
    assert decode_query(json.dumps(answer)) == answer
    assert decode_query("warning: experimental\n" + json.dumps(answer)) == answer
