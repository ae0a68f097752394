"""Tests for config discovery, snapshot building and package listing."""

import json
from pathlib import Path

import pytest

from conftest import LS_OUTPUT, FakeRunner, write_json
from turbo_mcp.errors import (
    ConfigNotFoundError,
    ConfigParseError,
    OutputParseError,
    WorkspaceQueryFailedError,
)
from turbo_mcp.workspace import (
    WorkspaceReader,
    discover_package_dirs,
    find_config,
    read_config,
)


def test_find_config_walks_up(monorepo: Path):
    assert find_config(monorepo / "apps" / "web") == monorepo / "turbo.json"


def test_find_config_skips_package_configs(monorepo: Path):
    assert find_config(monorepo / "packages" / "ui") == monorepo / "turbo.json"


def test_find_config_with_only_a_package_config(tmp_path: Path):
    write_json(tmp_path / "turbo.json", {"extends": ["//"], "tasks": {}})
    with pytest.raises(ConfigNotFoundError):
        find_config(tmp_path)


def test_find_config_accepts_jsonc(tmp_path: Path):
    (tmp_path / "turbo.jsonc").write_text('{"tasks": {}}')
    assert find_config(tmp_path) == tmp_path / "turbo.jsonc"


def test_find_config_missing(tmp_path: Path):
    with pytest.raises(ConfigNotFoundError) as exc:
        find_config(tmp_path)
    assert exc.value.code == "ConfigNotFound"
    assert exc.value.detail["start"] == str(tmp_path.resolve())


def test_read_config_builds_snapshot(monorepo: Path):
    snapshot = read_config(monorepo / "apps" / "web")

    assert snapshot.path == monorepo / "turbo.json"
    assert snapshot.root == monorepo
    assert list(snapshot.tasks) == ["build", "lint", "dev", "web#test"]
    assert snapshot.tasks["build"].depends_on == ("^build",)
    assert snapshot.tasks["dev"].persistent is True
    assert snapshot.tasks["dev"].cache is False
    assert snapshot.settings.ui == "tui"
    assert snapshot.uses_legacy_pipeline is False

    assert list(snapshot.package_overrides) == ["@repo/ui"]
    ui_build = snapshot.package_overrides["@repo/ui"]["build"]
    assert ui_build.package == "@repo/ui"
    assert ui_build.outputs == ("lib/**",)
    assert snapshot.package_config_paths["@repo/ui"] == monorepo / "packages/ui/turbo.json"


def test_legacy_pipeline_key(tmp_path: Path):
    write_json(tmp_path / "turbo.json", {"pipeline": {"build": {"outputs": ["dist/**"]}}})
    snapshot = read_config(tmp_path)

    assert snapshot.uses_legacy_pipeline is True
    assert snapshot.tasks["build"].outputs == ("dist/**",)


def test_broken_package_config_names_the_file(monorepo: Path):
    broken = monorepo / "packages/ui/turbo.json"
    broken.write_text('{"tasks": {"build": }')

    with pytest.raises(ConfigParseError) as exc:
        read_config(monorepo)
    assert exc.value.path == str(broken)
    assert exc.value.line == 1


def test_top_level_array_rejected(tmp_path: Path):
    (tmp_path / "turbo.json").write_text("[]")
    with pytest.raises(ConfigParseError, match="top level"):
        read_config(tmp_path)


def test_pnpm_workspace_globs_with_negation(tmp_path: Path):
    write_json(tmp_path / "package.json", {"name": "root"})
    (tmp_path / "pnpm-workspace.yaml").write_text(
        "packages:\n  - 'packages/*'\n  - '!packages/ignored'\n"
    )
    write_json(tmp_path / "packages/a/package.json", {"name": "a"})
    write_json(tmp_path / "packages/ignored/package.json", {"name": "ignored"})
    (tmp_path / "packages/no-manifest").mkdir(parents=True)

    assert discover_package_dirs(tmp_path) == [tmp_path / "packages/a"]


def test_yarn_style_workspaces_object(tmp_path: Path):
    write_json(tmp_path / "package.json", {"workspaces": {"packages": ["libs/*"]}})
    write_json(tmp_path / "libs/core/package.json", {"name": "core"})

    assert discover_package_dirs(tmp_path) == [tmp_path / "libs/core"]


@pytest.mark.asyncio
async def test_list_packages_decodes_turbo_ls(monorepo: Path, fake_runner: FakeRunner):
    reader = WorkspaceReader(fake_runner, binary="turbo", timeout=12)
    snapshot = read_config(monorepo)

    listing = await reader.list_packages(monorepo, snapshot)

    assert fake_runner.calls[0]["args"] == ["ls", "--output", "json"]
    assert fake_runner.calls[0]["cwd"] == monorepo
    assert fake_runner.calls[0]["timeout"] == 12
    assert listing.package_manager == "pnpm@9.0.0"
    web = listing.find("web")
    assert web.path == "apps/web"
    assert web.absolute_path == (monorepo / "apps/web").resolve()
    # "start" is a script but not a turbo task
    assert web.scripts == ("build", "dev", "lint")


@pytest.mark.asyncio
async def test_list_packages_without_snapshot_keeps_all_scripts(monorepo: Path, fake_runner):
    reader = WorkspaceReader(fake_runner)
    listing = await reader.list_packages(monorepo)
    assert listing.find("apps/web").scripts == ("build", "dev", "lint", "start")


@pytest.mark.asyncio
async def test_list_packages_tolerates_log_noise(monorepo: Path):
    runner = FakeRunner()
    runner.respond("ls", stdout="turbo 2.3.0\n\n" + LS_OUTPUT + "\n")
    listing = await WorkspaceReader(runner).list_packages(monorepo)
    assert [p.name for p in listing.packages] == ["@repo/ui", "web"]


@pytest.mark.asyncio
async def test_list_packages_failure(monorepo: Path):
    runner = FakeRunner()
    runner.respond("ls", exit_code=1, stderr="  x could not resolve workspaces\n")

    with pytest.raises(WorkspaceQueryFailedError) as exc:
        await WorkspaceReader(runner).list_packages(monorepo)
    assert exc.value.code == "WorkspaceQueryFailed"
    assert exc.value.detail == {"exit_code": 1, "stderr": "x could not resolve workspaces"}


@pytest.mark.asyncio
async def test_list_packages_garbage_output(monorepo: Path):
    runner = FakeRunner()
    runner.respond("ls", stdout=json.dumps({"packages": "nope"}))

    with pytest.raises(OutputParseError):
        await WorkspaceReader(runner).list_packages(monorepo)
