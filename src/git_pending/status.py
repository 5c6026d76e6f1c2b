"""Status enums shared by the engine and the formatters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ChangeStatus(StrEnum):
    """Working-tree change kind for a single file."""

    MODIFIED = "modified"
    ADDED = "added"
    DELETED = "deleted"
    UNTRACKED = "untracked"
    RENAMED = "renamed"
    CONFLICTED = "conflicted"

    @property
    def code(self) -> str:
        """One-letter code used in text output."""
        return _CHANGE_CODES[self]


_CHANGE_CODES = {
    ChangeStatus.MODIFIED: "M",
    ChangeStatus.ADDED: "A",
    ChangeStatus.DELETED: "D",
    ChangeStatus.UNTRACKED: "?",
    ChangeStatus.RENAMED: "R",
    ChangeStatus.CONFLICTED: "U",
}


class FetchStatus(StrEnum):
    """Outcome kind of the fetch pass for one repository."""

    NOT_ATTEMPTED = "not_attempted"
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching one repository. ``reason`` is set only on failure."""

    status: FetchStatus = FetchStatus.NOT_ATTEMPTED
    reason: str | None = None

    @classmethod
    def success(cls) -> FetchOutcome:
        return cls(FetchStatus.SUCCESS)

    @classmethod
    def timed_out(cls) -> FetchOutcome:
        return cls(FetchStatus.TIMED_OUT)

    @classmethod
    def failed(cls, reason: str) -> FetchOutcome:
        return cls(FetchStatus.FAILED, reason)

    @property
    def succeeded(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    @property
    def is_problem(self) -> bool:
        return self.status in (FetchStatus.TIMED_OUT, FetchStatus.FAILED)


NOT_ATTEMPTED = FetchOutcome()


class SyncStatus(StrEnum):
    """Repository sync status with its upstream (display label)."""

    UP_TO_DATE = "up_to_date"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"
    NO_UPSTREAM = "no_upstream"
    DETACHED = "detached"
    ERROR = "error"
