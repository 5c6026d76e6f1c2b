"""Exception types for git-pending."""

from __future__ import annotations

from pathlib import Path


class GitPendingError(Exception):
    """Base class for all git-pending errors."""


class ConfigError(GitPendingError):
    """Configuration could not be loaded or is invalid."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        if path is not None:
            message = f"Configuration error in '{path}': {message}"
        super().__init__(message)


class ScanError(GitPendingError):
    """The scan cannot start at all (e.g. no readable root)."""


class VCSError(GitPendingError):
    """A version-control operation failed for one repository."""

    def __init__(self, path: Path, operation: str, message: str):
        self.path = path
        self.operation = operation
        self.message = message
        super().__init__(f"Git operation '{operation}' failed in '{path}': {message}")


class OpenError(VCSError):
    """The repository could not be opened."""

    def __init__(self, path: Path, message: str):
        super().__init__(path, "open repository", message)
