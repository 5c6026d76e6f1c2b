"""Shared pytest fixtures: an instrumented in-memory VCS backend and real git helpers."""

from __future__ import annotations

import shutil
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from git_pending.core import ChangeStatus, FetchOutcome
from git_pending.errors import OpenError, VCSError

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not found")


@dataclass
class FakeRepo:
    """Scripted state of one repository behind FakeBackend."""

    branch: str | None = "main"
    upstream: str | None = None
    remote: str | None = None
    changes: list[tuple[ChangeStatus, str]] = field(default_factory=list)
    ahead: int = 0
    behind: int = 0
    open_error: str | None = None
    diff_error: str | None = None
    fetch_delay: float = 0.0
    fetch_outcome: FetchOutcome = field(default_factory=FetchOutcome.success)
    fetch_exception: Exception | None = None
    behind_after_fetch: int | None = None


class FakeBackend:
    """VCSBackend test double. Handles are repository paths.

    Records how many fetches run at the same time. Fetches sleep for
    ``fetch_delay`` and ignore the timeout they are given, like a hung
    network transport.
    """

    def __init__(self, repos: dict[Path, FakeRepo]):
        self.repos = repos
        self.fetch_calls: list[Path] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def is_repository_root(self, path: Path) -> bool:
        return path in self.repos

    def open(self, path: Path) -> Path:
        repo = self.repos.get(path)
        if repo is None:
            raise OpenError(path, "not a repository")
        if repo.open_error:
            raise OpenError(path, repo.open_error)
        return path

    def current_branch(self, handle: Path) -> str | None:
        return self.repos[handle].branch

    def upstream_of(self, handle: Path, branch: str) -> str | None:
        return self.repos[handle].upstream

    def remote_of(self, handle: Path, branch: str) -> str | None:
        return self.repos[handle].remote

    def working_tree_diff(self, handle: Path) -> list[tuple[ChangeStatus, str]]:
        repo = self.repos[handle]
        if repo.diff_error:
            raise VCSError(handle, "status", repo.diff_error)
        return list(repo.changes)

    def ahead_behind(self, handle: Path, local_ref: str, remote_ref: str) -> tuple[int, int]:
        repo = self.repos[handle]
        return repo.ahead, repo.behind

    def fetch(self, handle: Path, remote: str, timeout: float) -> FetchOutcome:
        repo = self.repos[handle]
        with self._lock:
            self.fetch_calls.append(handle)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            time.sleep(repo.fetch_delay)
            if repo.fetch_exception is not None:
                raise repo.fetch_exception
            if repo.fetch_outcome.succeeded and repo.behind_after_fetch is not None:
                repo.behind = repo.behind_after_fetch
            return repo.fetch_outcome
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def fake_repos(tmp_path: Path) -> Callable[..., FakeBackend]:
    """Create directories for scripted repositories and return their backend.

    Usage: ``backend = fake_repos(A=FakeRepo(), B=FakeRepo(behind=1))``.
    Keys may contain '/' to nest repositories below the root.
    """

    def factory(**repos: FakeRepo) -> FakeBackend:
        scripted = {}
        for relative, repo in repos.items():
            path = tmp_path / relative
            path.mkdir(parents=True, exist_ok=True)
            scripted[path] = repo
        return FakeBackend(scripted)

    return factory


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate git from the user's configuration."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.delenv("GIT_DIR", raising=False)
    monkeypatch.delenv("GIT_WORK_TREE", raising=False)


def git(cwd: Path, *args: str) -> str:
    """Run git in ``cwd`` and return stdout."""
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return result.stdout


def init_repo(path: Path, files: dict[str, str] | None = None) -> Path:
    """Create a repository on branch main with one commit."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    for name, content in (files or {"README": "hello\n"}).items():
        target = path / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    git(path, "add", "-A")
    git(path, "commit", "-q", "-m", "initial")
    return path


def commit_file(repo: Path, name: str, content: str) -> None:
    (repo / name).write_text(content)
    git(repo, "add", name)
    git(repo, "commit", "-q", "-m", f"update {name}")


@pytest.fixture
def remote_setup(tmp_path: Path, git_env: None) -> tuple[Path, Path, Path]:
    """A bare origin, a tracking clone under ``root/work`` and a second clone.

    Returns (root, work, other). ``other`` lives outside ``root``.
    """
    seed = init_repo(tmp_path / "seed")
    origin = tmp_path / "origin.git"
    git(tmp_path, "clone", "-q", "--bare", str(seed), str(origin))

    root = tmp_path / "root"
    root.mkdir()
    work = root / "work"
    git(root, "clone", "-q", str(origin), str(work))
    other = tmp_path / "other"
    git(tmp_path, "clone", "-q", str(origin), str(other))
    return root, work, other
