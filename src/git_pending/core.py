"""
git-pending: find local Git repositories that need attention.

Discovers repositories under one or more roots, reports uncommitted and
untracked changes and ahead/behind divergence from each branch's upstream,
and can refresh remote-tracking refs with a bounded, time-limited fetch pass.
"""

from __future__ import annotations

import fnmatch
import json
import logging
import os
import signal
import subprocess
import threading
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from ._version import __version__
from .config import (
    DEFAULT_FETCH_TIMEOUT,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_DEPTH,
    CliOverrides,
    OutputFormat,
    ScanConfiguration,
    build_configuration,
    load_settings,
    resolve_config_file,
)
from .errors import ConfigError, OpenError, ScanError, VCSError
from .formatters import OutputFormatter
from .log import get_logger, setup_logging
from .schema import get_tool_schema
from .status import NOT_ATTEMPTED, ChangeStatus, FetchOutcome, FetchStatus, SyncStatus

logger = get_logger()

# Seconds a timed-out git fetch gets to exit after SIGTERM before it is killed.
FETCH_KILL_GRACE = 2.0

# =============================================================================
# Domain Models
# =============================================================================


@dataclass(frozen=True)
class RepositoryRecord:
    """Status of one repository.

    ``ahead_count``/``behind_count`` are only meaningful when ``upstream_ref``
    is set; without an upstream they are always 0.
    """

    path: Path
    name: str
    current_branch: str | None = None
    upstream_ref: str | None = None
    remote: str | None = None
    changed_files: tuple[tuple[ChangeStatus, str], ...] = ()
    ahead_count: int = 0
    behind_count: int = 0
    fetch_outcome: FetchOutcome = NOT_ATTEMPTED
    error: str | None = None

    def __post_init__(self):
        if self.upstream_ref is None:
            object.__setattr__(self, "ahead_count", 0)
            object.__setattr__(self, "behind_count", 0)
        if not isinstance(self.changed_files, tuple):
            object.__setattr__(self, "changed_files", tuple(self.changed_files))

    @classmethod
    def for_path(cls, path: Path, **kwargs: Any) -> RepositoryRecord:
        return cls(path=path, name=repository_name(path), **kwargs)

    @property
    def has_upstream(self) -> bool:
        return self.upstream_ref is not None

    @property
    def is_dirty(self) -> bool:
        return bool(self.changed_files)

    @property
    def has_pending_changes(self) -> bool:
        """Changed files, unpushed commits or unpulled commits."""
        return self.is_dirty or self.ahead_count > 0 or self.behind_count > 0

    @property
    def sync_status(self) -> SyncStatus:
        if self.error is not None:
            return SyncStatus.ERROR
        if self.current_branch is None:
            return SyncStatus.DETACHED
        if self.upstream_ref is None:
            return SyncStatus.NO_UPSTREAM
        if self.ahead_count > 0 and self.behind_count > 0:
            return SyncStatus.DIVERGED
        if self.ahead_count > 0:
            return SyncStatus.AHEAD
        if self.behind_count > 0:
            return SyncStatus.BEHIND
        return SyncStatus.UP_TO_DATE

    @property
    def has_problem(self) -> bool:
        """Inspection error, fetch failure or fetch timeout."""
        return self.error is not None or self.fetch_outcome.is_problem

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "path": str(self.path),
            "name": self.name,
            "branch": self.current_branch,
            "upstream": self.upstream_ref,
            "changed_files": [
                {"status": status.value, "path": path} for status, path in self.changed_files
            ],
            "ahead": self.ahead_count if self.has_upstream else None,
            "behind": self.behind_count if self.has_upstream else None,
            "fetch_status": self.fetch_outcome.status.value,
            "fetch_error": self.fetch_outcome.reason,
            "error": self.error,
        }


@dataclass
class ScanSummary:
    """Run-level counts, always derived from the records."""

    total: int = 0
    with_pending_changes: int = 0
    errors: int = 0
    fetch_failed: int = 0
    fetch_timed_out: int = 0

    @classmethod
    def from_records(cls, records: Iterable[RepositoryRecord]) -> ScanSummary:
        summary = cls()
        for record in records:
            summary.total += 1
            if record.has_pending_changes:
                summary.with_pending_changes += 1
            if record.error is not None:
                summary.errors += 1
            if record.fetch_outcome.status == FetchStatus.FAILED:
                summary.fetch_failed += 1
            elif record.fetch_outcome.status == FetchStatus.TIMED_OUT:
                summary.fetch_timed_out += 1
        return summary

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "with_pending_changes": self.with_pending_changes,
            "errors": self.errors,
            "fetch_failed": self.fetch_failed,
            "fetch_timed_out": self.fetch_timed_out,
        }


@dataclass(frozen=True)
class ScanReport:
    """Sorted records of one run plus advisory warnings."""

    records: tuple[RepositoryRecord, ...] = ()
    warnings: tuple[str, ...] = field(default=(), compare=False)

    @property
    def summary(self) -> ScanSummary:
        return ScanSummary.from_records(self.records)

    def to_dict(self) -> dict:
        return {
            "repositories": [r.to_dict() for r in self.records],
            "summary": self.summary.to_dict(),
            "warnings": list(self.warnings),
        }


def repository_name(path: Path) -> str:
    """Display label for a repository path."""
    return path.name or str(path)


# =============================================================================
# VCS Collaborator
# =============================================================================


class VCSBackend(Protocol):
    """The version-control primitives the scan engine depends on.

    Handles returned by ``open`` are opaque to the engine. Everything except
    ``is_repository_root`` and ``fetch`` may raise ``VCSError``.
    """

    def is_repository_root(self, path: Path) -> bool: ...

    def open(self, path: Path) -> Any: ...

    def current_branch(self, handle: Any) -> str | None: ...

    def upstream_of(self, handle: Any, branch: str) -> str | None: ...

    def remote_of(self, handle: Any, branch: str) -> str | None: ...

    def working_tree_diff(self, handle: Any) -> list[tuple[ChangeStatus, str]]: ...

    def ahead_behind(self, handle: Any, local_ref: str, remote_ref: str) -> tuple[int, int]: ...

    def fetch(self, handle: Any, remote: str, timeout: float) -> FetchOutcome: ...


def classify_change(xy: str) -> ChangeStatus | None:
    """Map a porcelain v1 XY status pair to a ChangeStatus (None for ignored)."""
    if xy == "??":
        return ChangeStatus.UNTRACKED
    if xy == "!!":
        return None
    if "U" in xy or xy in ("AA", "DD"):
        return ChangeStatus.CONFLICTED
    if "R" in xy:
        return ChangeStatus.RENAMED
    if "A" in xy or "C" in xy:
        return ChangeStatus.ADDED
    if "D" in xy:
        return ChangeStatus.DELETED
    return ChangeStatus.MODIFIED


def parse_porcelain_z(output: str) -> list[tuple[ChangeStatus, str]]:
    """Parse ``git status --porcelain=v1 -z`` output, keeping git's order.

    Rename and copy entries are followed by an extra NUL-terminated field
    holding the original path, which is skipped.
    """
    entries: list[tuple[ChangeStatus, str]] = []
    fields = output.split("\0")
    i = 0
    while i < len(fields):
        entry = fields[i]
        i += 1
        if len(entry) < 4:
            continue
        xy, path = entry[:2], entry[3:]
        if "R" in xy or "C" in xy:
            i += 1
        status = classify_change(xy)
        if status is not None:
            entries.append((status, path))
    return entries


def classify_fetch_error(stderr: str) -> str:
    """Turn git fetch stderr into a short failure reason."""
    if "Repository not found" in stderr or "does not appear to be a git repository" in stderr:
        return "Remote repository not found"
    if "Could not read from remote" in stderr or "Authentication failed" in stderr:
        return "Authentication or access denied"
    if (
        "Network is unreachable" in stderr
        or "Temporary failure" in stderr
        or "Could not resolve host" in stderr
    ):
        return "Network error"
    lines = [line.strip() for line in stderr.strip().splitlines() if line.strip()]
    if lines:
        return lines[0]
    return "Failed to fetch from remote"


class GitOperations:
    """Low-level Git operations for a single repository."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path
        # Keep git from discovering a repository in a parent directory.
        self._env = {**os.environ, "GIT_CEILING_DIRECTORIES": str(repo_path.parent)}

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        """Run a git command in the repository."""
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._env,
                stdin=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            raise VCSError(self.repo_path, args[0], str(e)) from e

    def verify(self) -> None:
        """Raise OpenError unless the path is the top level of a work tree."""
        try:
            result = self._run("rev-parse", "--show-toplevel")
        except VCSError as e:
            raise OpenError(self.repo_path, e.message) from e
        if result.returncode != 0:
            raise OpenError(self.repo_path, result.stderr.strip() or "not a git repository")
        toplevel = Path(result.stdout.strip())
        if toplevel.resolve() != self.repo_path.resolve():
            raise OpenError(self.repo_path, f"work tree root is {toplevel}")

    def get_current_branch(self) -> str | None:
        """Get current branch name, None when HEAD is detached."""
        result = self._run("symbolic-ref", "--quiet", "--short", "HEAD")
        if result.returncode == 0:
            return result.stdout.strip()
        if result.returncode == 1:
            return None
        raise VCSError(self.repo_path, "symbolic-ref", result.stderr.strip())

    def get_upstream(self, branch: str) -> str | None:
        """Get the upstream remote-tracking ref of a branch."""
        result = self._run(
            "rev-parse", "--abbrev-ref", "--symbolic-full-name", f"refs/heads/{branch}@{{upstream}}"
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        return None

    def get_branch_remote(self, branch: str) -> str | None:
        """Get the remote a branch tracks ('.' means a local branch, reported as None)."""
        result = self._run("config", "--get", f"branch.{branch}.remote")
        remote = result.stdout.strip()
        if result.returncode != 0 or not remote or remote == ".":
            return None
        return remote

    def get_status_entries(self) -> list[tuple[ChangeStatus, str]]:
        """Get changed and untracked files in git's order."""
        result = self._run("status", "--porcelain=v1", "-z", "--untracked-files=all")
        if result.returncode != 0:
            raise VCSError(self.repo_path, "status", result.stderr.strip())
        return parse_porcelain_z(result.stdout)

    def get_ahead_behind(self, local_ref: str, remote_ref: str) -> tuple[int, int]:
        """Get (ahead, behind) commit counts of local_ref relative to remote_ref.

        A bare local_ref is a branch name and is qualified so that a tag of
        the same name cannot shadow it.
        """
        if not local_ref.startswith("refs/"):
            local_ref = f"refs/heads/{local_ref}"
        result = self._run("rev-list", "--left-right", "--count", f"{local_ref}...{remote_ref}")
        parts = result.stdout.split()
        if result.returncode != 0 or len(parts) != 2:
            raise VCSError(self.repo_path, "rev-list", result.stderr.strip() or result.stdout.strip())
        return int(parts[0]), int(parts[1])

    def fetch(self, remote: str, timeout: float) -> FetchOutcome:
        """Fetch one remote, giving up after ``timeout`` seconds.

        git runs in its own process group. On timeout the whole group is sent
        SIGTERM, so git can drop its ref lock files and ssh or credential
        helpers go with it; ref updates are lock-and-rename, so refs stay
        either old or new.
        """
        env = {
            **self._env,
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_ASKPASS": "true",
            "SSH_ASKPASS": "true",
            "LC_ALL": "C",
        }
        try:
            process = subprocess.Popen(
                ["git", "fetch", "--quiet", "--prune", remote],
                cwd=self.repo_path,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                start_new_session=True,
            )
        except OSError as e:
            return FetchOutcome.failed(f"Could not run git fetch: {e}")

        try:
            _, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._terminate(process)
            return FetchOutcome.timed_out()

        if process.returncode != 0:
            return FetchOutcome.failed(classify_fetch_error(stderr))
        return FetchOutcome.success()

    @staticmethod
    def _signal_group(process: subprocess.Popen, sig: int) -> None:
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            pass

    @classmethod
    def _terminate(cls, process: subprocess.Popen) -> None:
        cls._signal_group(process, signal.SIGTERM)
        try:
            process.communicate(timeout=FETCH_KILL_GRACE)
        except subprocess.TimeoutExpired:
            cls._signal_group(process, signal.SIGKILL)
            process.communicate()


class GitBackend:
    """VCSBackend driving the git executable; handles are GitOperations."""

    def is_repository_root(self, path: Path) -> bool:
        # .git is a directory for clones and a file for worktrees
        return (path / ".git").exists()

    def open(self, path: Path) -> GitOperations:
        ops = GitOperations(path)
        ops.verify()
        return ops

    def current_branch(self, handle: GitOperations) -> str | None:
        return handle.get_current_branch()

    def upstream_of(self, handle: GitOperations, branch: str) -> str | None:
        return handle.get_upstream(branch)

    def remote_of(self, handle: GitOperations, branch: str) -> str | None:
        return handle.get_branch_remote(branch)

    def working_tree_diff(self, handle: GitOperations) -> list[tuple[ChangeStatus, str]]:
        return handle.get_status_entries()

    def ahead_behind(
        self, handle: GitOperations, local_ref: str, remote_ref: str
    ) -> tuple[int, int]:
        return handle.get_ahead_behind(local_ref, remote_ref)

    def fetch(self, handle: GitOperations, remote: str, timeout: float) -> FetchOutcome:
        return handle.fetch(remote, timeout)


# =============================================================================
# Repository Locator
# =============================================================================


def is_ignored(path: Path, root: Path, patterns: Iterable[str]) -> bool:
    """Check a directory against ignore globs.

    Each pattern is tried against the directory name, its path relative to
    the scan root and its absolute path.
    """
    candidates = (path.name, path.relative_to(root).as_posix(), path.as_posix())
    for pattern in patterns:
        pattern = pattern.rstrip("/")
        if pattern and any(fnmatch.fnmatch(c, pattern) for c in candidates):
            return True
    return False


def find_repositories(
    roots: Iterable[Path],
    backend: VCSBackend,
    ignore_patterns: Iterable[str] = (),
    max_depth: int = DEFAULT_MAX_DEPTH,
    warnings: list[str] | None = None,
) -> Iterator[Path]:
    """Lazily yield repository roots found under ``roots``.

    A directory at depth ``d`` below its root (the root itself is depth 0) is
    considered only when ``d < max_depth``. Repositories are not descended
    into, ignored directories are pruned before descent, and symbolic links
    are never followed. Unreadable directories are skipped with a warning.
    """
    patterns = tuple(ignore_patterns)
    seen: set[Path] = set()

    def on_error(error: OSError) -> None:
        message = f"Skipping unreadable directory {error.filename}: {error.strerror}"
        logger.warning(message)
        if warnings is not None:
            warnings.append(message)

    for root in roots:
        root = root.absolute()
        for dirpath, dirnames, _ in os.walk(root, onerror=on_error, followlinks=False):
            current = Path(dirpath)
            depth = len(current.relative_to(root).parts)
            if depth >= max_depth:
                dirnames[:] = []
                continue

            try:
                is_root = backend.is_repository_root(current)
            except OSError as e:
                on_error(e)
                dirnames[:] = []
                continue

            if is_root:
                dirnames[:] = []
                if current not in seen:
                    seen.add(current)
                    yield current
                continue

            if depth + 1 >= max_depth:
                dirnames[:] = []
                continue

            dirnames[:] = sorted(
                d
                for d in dirnames
                if d != ".git" and not is_ignored(current / d, root, patterns)
            )


# =============================================================================
# Repository Inspector
# =============================================================================


class RepositoryInspector:
    """Compute the local status of one repository without network I/O."""

    def __init__(self, backend: VCSBackend):
        self.backend = backend

    def inspect(self, path: Path) -> RepositoryRecord:
        """Inspect a repository. Failures are recorded, never raised."""
        path = path.absolute()
        try:
            handle = self.backend.open(path)
        except VCSError as e:
            logger.info("Cannot open %s: %s", path, e)
            return RepositoryRecord.for_path(path, error=str(e))

        branch = upstream = remote = None
        changed: list[tuple[ChangeStatus, str]] = []
        ahead = behind = 0
        error = None
        try:
            branch = self.backend.current_branch(handle)
            if branch is not None:
                upstream = self.backend.upstream_of(handle, branch)
                remote = self.backend.remote_of(handle, branch)
            changed = self.backend.working_tree_diff(handle)
            if branch is not None and upstream is not None:
                ahead, behind = self.backend.ahead_behind(handle, branch, upstream)
        except VCSError as e:
            logger.info("Cannot inspect %s: %s", path, e)
            error = str(e)

        return RepositoryRecord.for_path(
            path,
            current_branch=branch,
            upstream_ref=upstream,
            remote=remote,
            changed_files=tuple(changed),
            ahead_count=ahead,
            behind_count=behind,
            error=error,
        )

    def recount(self, record: RepositoryRecord, handle: Any) -> RepositoryRecord:
        """Recompute ahead/behind after a fetch.

        The upstream is resolved again because a fetch can create a
        remote-tracking ref that did not exist before.
        """
        if record.current_branch is None:
            return record
        try:
            upstream = self.backend.upstream_of(handle, record.current_branch)
            if upstream is None:
                return replace(record, upstream_ref=None)
            ahead, behind = self.backend.ahead_behind(handle, record.current_branch, upstream)
        except VCSError as e:
            logger.info("Cannot recount %s: %s", record.path, e)
            return replace(record, error=str(e))
        return replace(record, upstream_ref=upstream, ahead_count=ahead, behind_count=behind)


# =============================================================================
# Fetch Coordinator
# =============================================================================


class FetchCoordinator:
    """Fetch many repositories with a worker pool and per-fetch timeouts.

    Every fetch runs in its own daemon thread that the worker waits on for at
    most ``timeout`` seconds. A fetch slot is taken before the thread starts
    and given back only when the backend call returns, so a fetch abandoned
    after its timeout still counts against ``max_concurrency``.
    """

    def __init__(
        self,
        backend: VCSBackend,
        inspector: RepositoryInspector | None = None,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        cancel_event: threading.Event | None = None,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.backend = backend
        self.inspector = inspector or RepositoryInspector(backend)
        self.timeout = timeout
        self.max_concurrency = max_concurrency
        self.cancel_event = cancel_event or threading.Event()
        self._slots = threading.BoundedSemaphore(max_concurrency)

    @staticmethod
    def is_fetchable(record: RepositoryRecord) -> bool:
        return record.error is None and record.current_branch is not None and record.remote is not None

    def run(self, records: Iterable[RepositoryRecord]) -> list[RepositoryRecord]:
        """Fetch every eligible record; return all records (order unspecified)."""
        finished: list[RepositoryRecord] = []
        queue: list[RepositoryRecord] = []
        for record in records:
            (queue if self.is_fetchable(record) else finished).append(record)

        if not queue:
            return finished

        logger.info("Fetching %d repositories (%d at a time)", len(queue), self.max_concurrency)
        with ThreadPoolExecutor(
            max_workers=self.max_concurrency, thread_name_prefix="git-pending-fetch"
        ) as executor:
            futures = [executor.submit(self._fetch_one, record) for record in queue]
            try:
                wait(futures)
            except KeyboardInterrupt:
                logger.warning("Interrupted: waiting for running fetches, starting no new ones")
                self.cancel_event.set()
                wait(futures)

        finished.extend(future.result() for future in futures)
        return finished

    def _fetch_one(self, record: RepositoryRecord) -> RepositoryRecord:
        """Fetch one repository and hand back a new record."""
        if self.cancel_event.is_set():
            return record
        try:
            handle = self.backend.open(record.path)
        except VCSError as e:
            return replace(record, fetch_outcome=FetchOutcome.failed(str(e)))

        outcome = self._fetch_with_deadline(handle, record.remote)
        if outcome is None:
            return record
        if not outcome.succeeded:
            logger.info("Fetch %s for %s", outcome.status.value, record.path)
            return replace(record, fetch_outcome=outcome)

        refreshed = self.inspector.recount(record, handle)
        return replace(refreshed, fetch_outcome=outcome)

    def _fetch_with_deadline(self, handle: Any, remote: str) -> FetchOutcome | None:
        """Race one backend fetch against the timeout (None if cancelled)."""
        self._slots.acquire()
        if self.cancel_event.is_set():
            self._slots.release()
            return None

        result: list[FetchOutcome] = []

        def transfer() -> None:
            try:
                result.append(self.backend.fetch(handle, remote, self.timeout))
            except Exception as e:
                result.append(FetchOutcome.failed(str(e) or type(e).__name__))
            finally:
                self._slots.release()

        thread = threading.Thread(target=transfer, name="git-pending-transfer", daemon=True)
        thread.start()
        thread.join(self.timeout)
        if thread.is_alive() or not result:
            return FetchOutcome.timed_out()
        return result[0]


# =============================================================================
# Aggregation
# =============================================================================


def sort_key(record: RepositoryRecord) -> tuple[bool, str, str]:
    """Pending repositories first, then by name (case-sensitive), then path."""
    return (not record.has_pending_changes, record.name, str(record.path))


def aggregate(records: Iterable[RepositoryRecord], warnings: Iterable[str] = ()) -> ScanReport:
    """Sort records into a report."""
    return ScanReport(records=tuple(sorted(records, key=sort_key)), warnings=tuple(warnings))


def filter_changes_only(report: ScanReport) -> ScanReport:
    """Keep only repositories with pending changes."""
    return replace(
        report, records=tuple(r for r in report.records if r.has_pending_changes)
    )


# =============================================================================
# Scanner
# =============================================================================


class Scanner:
    """Run one scan: locate, inspect, optionally fetch, aggregate."""

    def __init__(
        self,
        config: ScanConfiguration,
        backend: VCSBackend | None = None,
        *,
        cancel_event: threading.Event | None = None,
        sequential: bool = False,
    ):
        self.config = config
        self.backend = backend or GitBackend()
        self.inspector = RepositoryInspector(self.backend)
        self.cancel_event = cancel_event or threading.Event()
        self.sequential = sequential
        self.warnings: list[str] = []

    def readable_roots(self) -> list[Path]:
        """Return the configured roots that can be scanned.

        Raises:
            ScanError: when no root is a readable directory
        """
        roots = []
        for root in self.config.roots:
            if not root.is_dir():
                message = f"Skipping root {root}: not a directory"
            elif not os.access(root, os.R_OK | os.X_OK):
                message = f"Skipping root {root}: permission denied"
            else:
                roots.append(root)
                continue
            logger.warning(message)
            self.warnings.append(message)

        if not roots:
            listed = ", ".join(str(r) for r in self.config.roots) or "(none)"
            raise ScanError(f"No readable root directory to scan: {listed}")
        return roots

    def discover(self) -> list[Path]:
        """Find repository roots under all readable roots."""
        return list(
            find_repositories(
                self.readable_roots(),
                self.backend,
                self.config.ignore_patterns,
                self.config.max_depth,
                self.warnings,
            )
        )

    def inspect_all(self, paths: list[Path]) -> list[RepositoryRecord]:
        """Inspect repositories in parallel or sequentially (same result)."""
        if self.sequential or len(paths) <= 1:
            return [self.inspector.inspect(path) for path in paths]
        with ThreadPoolExecutor(max_workers=self.config.max_concurrency) as executor:
            return list(executor.map(self.inspector.inspect, paths))

    def fetch_all(self, records: list[RepositoryRecord]) -> list[RepositoryRecord]:
        coordinator = FetchCoordinator(
            self.backend,
            self.inspector,
            timeout=self.config.fetch_timeout,
            max_concurrency=1 if self.sequential else self.config.max_concurrency,
            cancel_event=self.cancel_event,
        )
        return coordinator.run(records)

    def run(self) -> ScanReport:
        self.warnings = []
        paths = self.discover()
        logger.info("Found %d repositories", len(paths))

        records = self.inspect_all(paths)
        if self.config.fetch_enabled:
            records = self.fetch_all(records)

        report = aggregate(records, self.warnings)
        if self.config.changes_only:
            report = filter_changes_only(report)
        return report


# =============================================================================
# CLI Application
# =============================================================================


app = typer.Typer(
    name="git-pending",
    help="Find local Git repositories with uncommitted, unpushed or unpulled work.",
    no_args_is_help=True,
)

err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-pending {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output the tool and JSON report schema",
    ),
):
    """git-pending: find local Git repositories that need attention."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


def _log_level(debug: bool, verbose: bool | None) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    return logging.WARNING


def load_configuration(
    overrides: CliOverrides, config_file: Path | None, no_config: bool
) -> ScanConfiguration:
    """Load and merge configuration, exiting with status 1 when it is invalid."""
    try:
        settings = load_settings(config_file, use_file=not no_config)
        return build_configuration(settings, overrides)
    except ConfigError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


@app.command()
def scan(
    paths: list[str] = typer.Argument(
        None,
        help="Root directories to scan (default: roots from config, else '.')",
    ),
    fetch: bool | None = typer.Option(
        None,
        "--fetch/--no-fetch",
        help="Fetch remotes before computing ahead/behind",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help=f"Per-repository fetch timeout in seconds (default: {DEFAULT_FETCH_TIMEOUT:g})",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-p",
        help=f"Maximum parallel fetches (default: {DEFAULT_MAX_CONCURRENCY})",
    ),
    depth: int | None = typer.Option(
        None,
        "--depth",
        "-d",
        help=f"Maximum directory depth to search (default: {DEFAULT_MAX_DEPTH})",
    ),
    ignore: list[str] = typer.Option(
        None,
        "--ignore",
        "-i",
        help="Glob of directories to skip (repeatable)",
    ),
    output_format: OutputFormat | None = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON (same as --format json)",
    ),
    verbose: bool | None = typer.Option(
        None,
        "--verbose/--quiet",
        "-v/-q",
        help="Show paths, upstreams and changed files for every repository",
    ),
    changes_only: bool | None = typer.Option(
        None,
        "--changes-only/--all",
        "-c/-a",
        help="Show only repositories with pending changes",
    ),
    add_path: bool = typer.Option(
        False,
        "--add-path",
        help="Scan PATHS in addition to the roots from the config file",
    ),
    config_file: Path = typer.Option(
        None,
        "--config",
        help="Config file to read instead of the default location",
    ),
    no_config: bool = typer.Option(
        False,
        "--no-config",
        help="Ignore the config file",
    ),
    sequential: bool = typer.Option(
        False,
        "--sequential",
        "-s",
        help="Run sequentially instead of parallel",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Log debugging information to stderr",
    ),
):
    """Show repositories with uncommitted changes or ahead/behind their upstream."""
    setup_logging(_log_level(debug, verbose), err_console)

    overrides = CliOverrides(
        roots=list(paths or []),
        add_roots=add_path,
        ignore=list(ignore or []),
        depth=depth,
        fetch=fetch,
        timeout=timeout,
        concurrency=concurrency,
        format=OutputFormat.JSON if json_output else output_format,
        verbose=verbose,
        changes_only=changes_only,
    )
    config = load_configuration(overrides, config_file, no_config)
    setup_logging(_log_level(debug, config.verbose), err_console)
    logger.debug("Configuration: %s", config.to_dict())

    scanner = Scanner(config, sequential=sequential)
    try:
        if config.output_format == OutputFormat.TEXT and err_console.is_terminal:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=err_console,
                transient=True,
            ) as progress:
                progress.add_task(
                    "Fetching and analyzing..." if config.fetch_enabled else "Analyzing...",
                    total=None,
                )
                report = scanner.run()
        else:
            report = scanner.run()
    except ScanError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)

    formatter = OutputFormatter(verbose=config.verbose)
    Console().print(formatter.render(report, config.output_format), soft_wrap=True)


@app.command(name="config")
def show_config(
    config_file: Path = typer.Option(
        None,
        "--config",
        help="Config file to read instead of the default location",
    ),
    no_config: bool = typer.Option(
        False,
        "--no-config",
        help="Ignore the config file",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show the config file location and the merged configuration."""
    setup_logging(logging.WARNING, err_console)
    config = load_configuration(CliOverrides(), config_file, no_config)
    path, _ = resolve_config_file(config_file)
    source = None if no_config or not path.exists() else str(path)

    formatter = OutputFormatter()
    Console().print(formatter.render_config(config, source, json_output), soft_wrap=True)
