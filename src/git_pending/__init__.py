"""git-pending: find local Git repositories with work that is not yet shared."""

# rich fails on import when the working directory has been deleted.
import os

try:
    os.getcwd()
except OSError:
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .config import OutputFormat, ScanConfiguration, build_configuration, load_settings
from .core import (
    ChangeStatus,
    FetchCoordinator,
    FetchOutcome,
    FetchStatus,
    GitBackend,
    GitOperations,
    RepositoryInspector,
    RepositoryRecord,
    Scanner,
    ScanReport,
    ScanSummary,
    SyncStatus,
    VCSBackend,
    aggregate,
    app,
    filter_changes_only,
    find_repositories,
)
from .errors import ConfigError, GitPendingError, OpenError, ScanError, VCSError
from .formatters import OutputFormatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "ChangeStatus",
    "FetchOutcome",
    "FetchStatus",
    "RepositoryRecord",
    "ScanReport",
    "ScanSummary",
    "SyncStatus",
    # Configuration
    "OutputFormat",
    "ScanConfiguration",
    "build_configuration",
    "load_settings",
    # Operations
    "FetchCoordinator",
    "GitBackend",
    "GitOperations",
    "RepositoryInspector",
    "Scanner",
    "VCSBackend",
    "aggregate",
    "filter_changes_only",
    "find_repositories",
    # Errors
    "ConfigError",
    "GitPendingError",
    "OpenError",
    "ScanError",
    "VCSError",
    # Formatters
    "OutputFormatter",
    "get_tool_schema",
]
