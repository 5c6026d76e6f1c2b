"""Tests for the typer command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import FakeRepo
from typer.testing import CliRunner

import git_pending.core as core
from git_pending import __version__
from git_pending.config import CONFIG_ENV_VAR
from git_pending.core import ChangeStatus, app

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_user_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


@pytest.fixture
def use_backend(monkeypatch: pytest.MonkeyPatch):
    """Make the CLI scan through the given FakeBackend."""

    def install(backend):
        monkeypatch.setattr(core, "GitBackend", lambda: backend)
        return backend

    return install


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_schema():
    result = runner.invoke(app, ["--schema"])
    assert result.exit_code == 0
    schema = json.loads(result.output)
    assert schema["name"] == "git-pending"
    assert [tool["name"] for tool in schema["tools"]] == ["scan", "config"]


def test_scan_text(tmp_path, fake_repos, use_backend):
    use_backend(
        fake_repos(
            A=FakeRepo(),
            B=FakeRepo(
                upstream="origin/main",
                remote="origin",
                behind=1,
                changes=[(ChangeStatus.MODIFIED, "x"), (ChangeStatus.MODIFIED, "y")],
            ),
        )
    )
    result = runner.invoke(app, ["scan", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "Found 2 repositories (1 with changes):" in result.output
    assert "(2 changed files)" in result.output


def test_scan_json(tmp_path, fake_repos, use_backend):
    use_backend(fake_repos(repo=FakeRepo(changes=[(ChangeStatus.UNTRACKED, "new.txt")])))
    result = runner.invoke(app, ["scan", str(tmp_path), "--json"])
    assert result.exit_code == 0, result.output

    data = json.loads(result.stdout)
    assert data["summary"]["total"] == 1
    assert data["summary"]["with_pending_changes"] == 1
    (repo,) = data["repositories"]
    assert repo["name"] == "repo"
    assert repo["changed_files"] == [{"status": "untracked", "path": "new.txt"}]
    assert repo["fetch_status"] == "not_attempted"


def test_scan_changes_only(tmp_path, fake_repos, use_backend):
    use_backend(fake_repos(clean=FakeRepo(), dirty=FakeRepo(changes=[(ChangeStatus.ADDED, "a")])))
    result = runner.invoke(app, ["scan", str(tmp_path), "-c", "--format", "json"])
    assert result.exit_code == 0, result.output
    assert [r["name"] for r in json.loads(result.stdout)["repositories"]] == ["dirty"]


def test_scan_with_fetch_failures_still_exits_zero(tmp_path, fake_repos, use_backend):
    backend = use_backend(
        fake_repos(
            C=FakeRepo(upstream="origin/main", remote="origin", fetch_delay=5.0),
        )
    )
    result = runner.invoke(app, ["scan", str(tmp_path), "--fetch", "--timeout", "1", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["repositories"][0]["fetch_status"] == "timed_out"
    assert backend.fetch_calls == [tmp_path / "C"]


def test_config_file_settings_apply(tmp_path, fake_repos, use_backend):
    use_backend(fake_repos(keep=FakeRepo(), **{"vendor/dep": FakeRepo()}))
    config = tmp_path / "pending.toml"
    config.write_text(f'[defaults]\nroots = ["{tmp_path.as_posix()}"]\nignore = ["vendor"]\nformat = "json"\n')

    result = runner.invoke(app, ["scan", "--config", str(config)])
    assert result.exit_code == 0, result.output
    assert [r["name"] for r in json.loads(result.stdout)["repositories"]] == ["keep"]


def test_invalid_config_exits_1(tmp_path):
    config = tmp_path / "bad.toml"
    config.write_text("depth = 'deep'\n")
    result = runner.invoke(app, ["scan", str(tmp_path), "--config", str(config)])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_missing_config_file_exits_1(tmp_path):
    result = runner.invoke(app, ["scan", str(tmp_path), "--config", str(tmp_path / "missing.toml")])
    assert result.exit_code == 1


def test_unreadable_roots_exit_1(tmp_path):
    result = runner.invoke(app, ["scan", str(tmp_path / "nowhere"), "--no-config"])
    assert result.exit_code == 1
    assert "Error" in result.output


def test_config_command(tmp_path):
    config = tmp_path / "pending.toml"
    config.write_text("depth = 7\n")
    result = runner.invoke(app, ["config", "--config", str(config), "--json"])
    assert result.exit_code == 0, result.output

    data = json.loads(result.stdout)
    assert data["source"] == str(config)
    assert data["config"]["max_depth"] == 7


def test_config_command_without_file():
    result = runner.invoke(app, ["config", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["source"] is None
    assert data["config"]["max_depth"] == 3
