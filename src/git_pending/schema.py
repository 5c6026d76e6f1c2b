"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_CHANGED_FILE = {
    "type": "object",
    "properties": {
        "status": {
            "type": "string",
            "enum": ["modified", "added", "deleted", "untracked", "renamed", "conflicted"],
        },
        "path": {"type": "string", "description": "Path relative to the repository root"},
    },
}

_REPOSITORY = {
    "type": "object",
    "properties": {
        "path": {"type": "string"},
        "name": {"type": "string"},
        "branch": {
            "type": ["string", "null"],
            "description": "Current branch, null when HEAD is detached or inspection failed",
        },
        "upstream": {"type": ["string", "null"], "description": "e.g. origin/main"},
        "changed_files": {"type": "array", "items": _CHANGED_FILE},
        "ahead": {
            "type": ["integer", "null"],
            "description": "Commits not on the upstream, null without an upstream",
        },
        "behind": {
            "type": ["integer", "null"],
            "description": "Upstream commits not on the branch, null without an upstream",
        },
        "fetch_status": {
            "type": "string",
            "enum": ["not_attempted", "success", "timed_out", "failed"],
        },
        "fetch_error": {"type": ["string", "null"]},
        "error": {
            "type": ["string", "null"],
            "description": "Why the repository could not be fully inspected",
        },
    },
}


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "git-pending",
        "version": __version__,
        "description": "Find local Git repositories that need attention: uncommitted or untracked files, commits not pushed to the upstream, and upstream commits not yet pulled. Optionally fetches first, with a per-repository timeout.",
        "usage": "git-pending <command> [paths...] [options]",
        "tools": [
            {
                "name": "scan",
                "description": "Scan one or more root directories for Git repositories and report each one's changed files and ahead/behind counts. Repositories with pending changes are listed first. Fetching is off by default; with --fetch, unreachable or slow remotes are reported per repository and never abort the scan.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "paths": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Root directories (default: roots from config file, else current directory)",
                        },
                        "fetch": {
                            "type": "boolean",
                            "description": "Fetch remotes before computing ahead/behind",
                            "default": False,
                        },
                        "timeout": {
                            "type": "number",
                            "description": "Per-repository fetch timeout in seconds",
                            "default": 5,
                        },
                        "concurrency": {
                            "type": "integer",
                            "description": "Maximum number of fetches in flight",
                            "default": 8,
                        },
                        "depth": {
                            "type": "integer",
                            "description": "Maximum directory depth below each root",
                            "default": 3,
                        },
                        "ignore": {
                            "type": "array",
                            "items": {"type": "string"},
                            "description": "Glob patterns of directories to skip",
                        },
                        "changes_only": {
                            "type": "boolean",
                            "description": "Only list repositories with pending changes",
                            "default": False,
                        },
                        "json": {
                            "type": "boolean",
                            "description": "Output as JSON for machine parsing",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "repositories": {"type": "array", "items": _REPOSITORY},
                        "summary": {
                            "type": "object",
                            "properties": {
                                "total": {"type": "integer"},
                                "with_pending_changes": {"type": "integer"},
                                "errors": {"type": "integer"},
                                "fetch_failed": {"type": "integer"},
                                "fetch_timed_out": {"type": "integer"},
                            },
                        },
                        "warnings": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "examples": [
                    {
                        "description": "Repositories with pending work under ~/src",
                        "command": "git-pending scan ~/src --changes-only --json",
                    },
                    {
                        "description": "Fetch first, giving each remote at most 3 seconds",
                        "command": "git-pending scan ~/src --fetch --timeout 3 --json",
                    },
                ],
            },
            {
                "name": "config",
                "description": "Show the config file in use and the merged configuration.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "json": {"type": "boolean", "default": False},
                    },
                    "required": [],
                },
            },
        ],
        "configFile": {
            "description": "TOML file; keys may be top-level or under [defaults]",
            "priority": [
                "--config option",
                "$GIT_PENDING_CONFIG environment variable",
                "$XDG_CONFIG_HOME/git-pending/config.toml (default ~/.config/git-pending/config.toml)",
            ],
            "keys": [
                "roots",
                "ignore",
                "depth",
                "fetch",
                "timeout",
                "concurrency",
                "format",
                "verbose",
                "changes_only",
            ],
            "example": '[defaults]\nroots = ["~/src", "$WORK/repos"]\nignore = ["node_modules", "vendor"]\nfetch = true\ntimeout = 5\n',
        },
        "notes": [
            "Command-line options override the config file, which overrides built-in defaults",
            "ahead/behind are null for repositories without an upstream",
            "Exit status is 1 only for invalid configuration or when no root can be read",
        ],
    }
