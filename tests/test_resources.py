"""Tests for the turbo:// resources."""

import json
from pathlib import Path

import pytest

from conftest import FakeRunner
from turbo_mcp.errors import ConfigNotFoundError, ResourceNotFoundError
from turbo_mcp.resources import RESOURCES, ResourceProvider
from turbo_mcp.session import Session
from turbo_mcp.workspace import WorkspaceReader


@pytest.fixture
def provider(session: Session, fake_runner: FakeRunner) -> ResourceProvider:
    return ResourceProvider(session, WorkspaceReader(fake_runner), fake_runner, daemon_timeout=5)


async def _read(provider: ResourceProvider, uri: str):
    result = await provider.read(uri)
    assert result.uri == uri
    assert result.mime_type == "application/json"
    return json.loads(result.text)


def test_four_resources_declared():
    uris = [str(r.uri) for r in RESOURCES]
    assert uris == ["turbo://config", "turbo://tasks", "turbo://packages", "turbo://cache"]
    assert all(r.mimeType == "application/json" for r in RESOURCES)


@pytest.mark.asyncio
async def test_tasks_keep_dependencies_verbatim(provider, fake_runner: FakeRunner):
    tasks = await _read(provider, "turbo://tasks")

    assert tasks["build"]["dependsOn"] == ["^build"]
    assert set(tasks) == {"build", "lint", "dev", "web#test", "@repo/ui#build"}
    assert fake_runner.calls == []


@pytest.mark.asyncio
async def test_config_payload(provider, monorepo: Path):
    config = await _read(provider, "turbo://config")

    assert config["path"] == str(monorepo / "turbo.json")
    assert config["settings"]["cacheDir"] == ".turbo/cache"
    assert config["settings"]["ui"] == "tui"
    assert config["usesLegacyPipeline"] is False
    assert "@repo/ui" in config["packageOverrides"]


@pytest.mark.asyncio
async def test_packages_payload(provider, fake_runner: FakeRunner):
    packages = await _read(provider, "turbo://packages")

    assert [p["name"] for p in packages] == ["@repo/ui", "web"]
    assert fake_runner.argvs == [["ls", "--output", "json"]]


@pytest.mark.asyncio
async def test_cache_payload_includes_daemon_status(provider, fake_runner: FakeRunner, monorepo):
    fake_runner.respond("daemon", "status", exit_code=1, stderr="daemon is not running")

    cache = await _read(provider, "turbo://cache")

    assert fake_runner.calls[-1]["args"] == ["daemon", "status"]
    assert fake_runner.calls[-1]["timeout"] == 5
    assert cache["cacheDir"] == ".turbo/cache"
    assert cache["cacheDirAbsolute"] == str(monorepo / ".turbo/cache")
    assert cache["daemon"]["status"]["running"] is False
    assert cache["tasks"]["dev"] == {"cache": False, "outputs": []}
    assert cache["tasks"]["@repo/ui#build"] == {"cache": True, "outputs": ["lib/**"]}


@pytest.mark.asyncio
async def test_reads_follow_the_session(provider, session: Session, monorepo: Path):
    session.set_workdir("packages/ui")
    config = await _read(provider, "turbo://config")
    # still the root config: discovery walks up from the session directory
    assert config["path"] == str(monorepo / "turbo.json")


@pytest.mark.asyncio
async def test_tasks_from_inside_a_package(provider, session: Session):
    session.set_workdir("packages/ui")
    tasks = await _read(provider, "turbo://tasks")

    assert "web#test" in tasks
    assert tasks["build"]["dependsOn"] == ["^build"]
    assert tasks["build"]["package"] is None
    assert tasks["@repo/ui#build"]["outputs"] == ["lib/**"]


@pytest.mark.asyncio
async def test_unknown_uri(provider):
    with pytest.raises(ResourceNotFoundError) as exc:
        await provider.read("turbo://secrets")
    assert exc.value.code == "ResourceNotFound"
    assert exc.value.detail["available"] == [
        "turbo://config",
        "turbo://tasks",
        "turbo://packages",
        "turbo://cache",
    ]


@pytest.mark.asyncio
async def test_missing_config(tmp_path: Path, fake_runner: FakeRunner):
    provider = ResourceProvider(Session(tmp_path), WorkspaceReader(fake_runner), fake_runner)
    with pytest.raises(ConfigNotFoundError):
        await provider.read("turbo://tasks")
