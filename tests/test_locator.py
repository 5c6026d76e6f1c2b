"""Tests for repository discovery."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from git_pending.core import GitBackend, find_repositories, is_ignored


def make_repo(path: Path) -> Path:
    (path / ".git").mkdir(parents=True)
    return path


def found(roots, **kwargs) -> list[Path]:
    return list(find_repositories(roots, GitBackend(), **kwargs))


class DeniedBackend(GitBackend):
    """Raises like a directory that can be listed but not searched."""

    def __init__(self, denied: Path):
        self.denied = denied

    def is_repository_root(self, path: Path) -> bool:
        if path == self.denied:
            raise PermissionError(13, "Permission denied", str(path / ".git"))
        return super().is_repository_root(path)


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """root/
    shallow/        repo at depth 1
    level1/level2/deep/   repo at depth 3
    outer/          repo containing outer/nested (never reported)
    node_modules/pkg/     repo under an ignored directory
    """
    make_repo(tmp_path / "shallow")
    make_repo(tmp_path / "level1" / "level2" / "deep")
    make_repo(tmp_path / "outer")
    make_repo(tmp_path / "outer" / "nested")
    make_repo(tmp_path / "node_modules" / "pkg")
    return tmp_path


class TestFindRepositories:
    def test_default_depth(self, tree):
        assert sorted(found([tree])) == sorted(
            [tree / "node_modules" / "pkg", tree / "outer", tree / "shallow"]
        )

    def test_depth_limits(self, tree):
        assert found([tree], max_depth=0) == []
        assert sorted(found([tree], max_depth=2)) == sorted([tree / "outer", tree / "shallow"])
        assert tree / "level1" / "level2" / "deep" in found([tree], max_depth=4)

    def test_root_itself_can_be_a_repository(self, tmp_path):
        repo = make_repo(tmp_path / "repo")
        make_repo(repo / "vendored")
        assert found([repo], max_depth=1) == [repo]
        assert found([repo]) == [repo]

    def test_does_not_descend_into_repositories(self, tree):
        assert tree / "outer" / "nested" not in found([tree], max_depth=10)

    def test_ignore_by_name(self, tree):
        result = found([tree], ignore_patterns=["node_modules"])
        assert tree / "node_modules" / "pkg" not in result
        assert tree / "shallow" in result

    def test_ignore_by_glob_and_relative_path(self, tree):
        assert tree / "shallow" not in found([tree], ignore_patterns=["shal*"])
        assert tree / "level1" / "level2" / "deep" not in found(
            [tree], ignore_patterns=["level1/level2"], max_depth=5
        )

    def test_ignore_by_absolute_path(self, tree):
        result = found([tree], ignore_patterns=[str(tree / "outer")])
        assert tree / "outer" not in result

    def test_root_is_never_pruned(self, tmp_path):
        repo = make_repo(tmp_path / "vendor")
        assert found([repo], ignore_patterns=["vendor"]) == [repo]

    def test_symlinks_not_followed(self, tmp_path):
        target = make_repo(tmp_path / "elsewhere" / "real")
        root = tmp_path / "root"
        root.mkdir()
        os.symlink(target, root / "link", target_is_directory=True)
        assert found([root]) == []

    def test_overlapping_roots_report_once(self, tree):
        result = found([tree, tree / "outer"])
        assert result.count(tree / "outer") == 1

    def test_lazy(self, tree):
        iterator = find_repositories([tree], GitBackend())
        assert next(iterator) in {tree / "node_modules" / "pkg", tree / "outer", tree / "shallow"}

    @pytest.mark.skipif(
        not hasattr(os, "geteuid") or os.geteuid() == 0, reason="permissions are not enforced for root"
    )
    def test_unreadable_directory_is_a_warning(self, tmp_path):
        make_repo(tmp_path / "visible")
        locked = tmp_path / "locked"
        make_repo(locked / "hidden")
        locked.chmod(0)
        try:
            warnings: list[str] = []
            assert found([tmp_path], warnings=warnings) == [tmp_path / "visible"]
            assert len(warnings) == 1
            assert "locked" in warnings[0]
        finally:
            locked.chmod(0o755)

    def test_marker_check_error_is_a_warning(self, tmp_path):
        make_repo(tmp_path / "visible")
        make_repo(tmp_path / "searchless" / "hidden")
        warnings: list[str] = []
        result = list(
            find_repositories([tmp_path], DeniedBackend(tmp_path / "searchless"), warnings=warnings)
        )
        assert result == [tmp_path / "visible"]
        assert len(warnings) == 1
        assert "searchless" in warnings[0]


def test_is_ignored_trailing_slash(tmp_path):
    assert is_ignored(tmp_path / "build", tmp_path, ["build/"])
    assert not is_ignored(tmp_path / "src", tmp_path, ["build/"])
