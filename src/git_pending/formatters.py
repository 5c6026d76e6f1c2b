"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from rich.text import Text

from .config import OutputFormat
from .status import FetchStatus, SyncStatus

if TYPE_CHECKING:
    from .config import ScanConfiguration
    from .core import RepositoryRecord, ScanReport, ScanSummary


def compute_unique_display_names(records: list[RepositoryRecord]) -> dict[Path, str]:
    """Compute unique display names for records with duplicate names.

    When multiple repositories share the same name, parent directory
    components are added until each name becomes unique.

    Args:
        records: Records with ``name`` and ``path`` attributes

    Returns:
        Dictionary mapping path to display name
    """
    name_groups: dict[str, list[Path]] = defaultdict(list)
    for record in records:
        name_groups[record.name].append(record.path)

    result: dict[Path, str] = {}
    for name, paths in name_groups.items():
        if len(paths) == 1:
            result[paths[0]] = name
        else:
            for path, unique_name in zip(paths, _make_paths_unique(paths)):
                result[path] = unique_name
    return result


def _make_paths_unique(paths: list[Path]) -> list[str]:
    """Generate shortest unique trailing-component names for a list of paths."""
    path_parts_list = [list(reversed(p.parts)) for p in paths]

    result = []
    for i, parts in enumerate(path_parts_list):
        for depth in range(1, len(parts) + 1):
            candidate = "/".join(reversed(parts[:depth]))
            clashes = any(
                "/".join(reversed(other[:depth])) == candidate
                for j, other in enumerate(path_parts_list)
                if i != j
            )
            if not clashes:
                result.append(candidate)
                break
        else:
            result.append(str(paths[i]))
    return result


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    return f"{count} {singular if count == 1 else (plural or singular + 's')}"


class OutputFormatter:
    """Render a scan report as styled text or JSON.

    Rendering is pure: it returns a ``rich.text.Text`` and never prints, so
    the same report always renders to the same output.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def render(self, report: ScanReport, output_format: OutputFormat = OutputFormat.TEXT) -> Text:
        """Render a report in the requested format."""
        match output_format:
            case OutputFormat.JSON:
                return self.render_json(report)
            case _:
                return self.render_text(report)

    def render_json(self, report: ScanReport) -> Text:
        """JSON document with ``repositories`` and ``summary``."""
        return Text(json.dumps(report.to_dict(), indent=2))

    def render_text(self, report: ScanReport) -> Text:
        """Human-readable listing, one entry per repository."""
        summary = report.summary
        if summary.total == 0:
            return Text("No repositories found.", style="dim")

        text = Text()
        text.append(
            f"Found {_plural(summary.total, 'repository', 'repositories')} "
            f"({summary.with_pending_changes} with changes):",
            style="bold",
        )
        text.append("\n\n")

        display_names = compute_unique_display_names(list(report.records))
        for i, record in enumerate(report.records):
            if i and self.verbose:
                text.append("\n")
            self._append_record(text, record, display_names.get(record.path, record.name))
        text.rstrip()

        problems = self._problem_line(summary)
        if problems is not None:
            text.append("\n\n")
            text.append_text(problems)
        return text

    def _append_record(self, text: Text, record: RepositoryRecord, display_name: str) -> None:
        text.append(display_name, style="bold red" if record.has_pending_changes else "bold green")
        text.append(" [")
        text.append(self._branch_label(record), style="blue")
        text.append("] ")
        text.append(f"({_plural(len(record.changed_files), 'changed file')})")

        sync = self._sync_indicator(record)
        if sync is not None:
            text.append(" ")
            text.append_text(sync)

        for marker in self._markers(record):
            text.append(" ")
            text.append_text(marker)

        if not self.verbose:
            text.append(" - ")
            text.append(str(record.path), style="dim")
            text.append("\n")
            return

        text.append("\n")
        self._append_details(text, record)

    def _append_details(self, text: Text, record: RepositoryRecord) -> None:
        text.append(f"  Path: {record.path}\n")
        text.append(f"  Upstream: {record.upstream_ref or 'none'}\n")
        text.append(f"  Status: {self.sync_label(record)}\n")

        outcome = record.fetch_outcome
        match outcome.status:
            case FetchStatus.SUCCESS:
                text.append("  Fetch: ok\n")
            case FetchStatus.TIMED_OUT:
                text.append("  Fetch: ")
                text.append("timed out", style="yellow")
                text.append("\n")
            case FetchStatus.FAILED:
                text.append("  Fetch: ")
                text.append(f"failed: {outcome.reason}", style="red")
                text.append("\n")

        if record.error is not None:
            text.append("  Error: ")
            text.append(record.error, style="red")
            text.append("\n")

        if record.changed_files:
            text.append("  Changed files:\n")
            for status, path in record.changed_files:
                text.append("    ")
                text.append(status.code, style="yellow")
                text.append(f" {path}\n")

    @staticmethod
    def _branch_label(record: RepositoryRecord) -> str:
        if record.current_branch is not None:
            return record.current_branch
        if record.error is not None:
            return "unknown"
        return "detached"

    @staticmethod
    def _sync_indicator(record: RepositoryRecord) -> Text | None:
        """Arrows for commits ahead/behind, None when there is nothing to show."""
        match record.sync_status:
            case SyncStatus.AHEAD:
                return Text(f"↑{record.ahead_count}", style="yellow")
            case SyncStatus.BEHIND:
                return Text(f"↓{record.behind_count}", style="blue")
            case SyncStatus.DIVERGED:
                return Text(f"↑{record.ahead_count} ↓{record.behind_count}", style="red")
            case _:
                return None

    @staticmethod
    def _markers(record: RepositoryRecord) -> list[Text]:
        markers = []
        if record.error is not None:
            markers.append(Text("✗ error", style="bold red"))
        if record.fetch_outcome.status == FetchStatus.TIMED_OUT:
            markers.append(Text("⌛ fetch timed out", style="yellow"))
        elif record.fetch_outcome.status == FetchStatus.FAILED:
            markers.append(Text("✗ fetch failed", style="red"))
        return markers

    @staticmethod
    def sync_label(record: RepositoryRecord) -> str:
        """Readable sync status, e.g. 'behind by 2'."""
        match record.sync_status:
            case SyncStatus.UP_TO_DATE:
                return "up to date"
            case SyncStatus.AHEAD:
                return f"ahead by {record.ahead_count}"
            case SyncStatus.BEHIND:
                return f"behind by {record.behind_count}"
            case SyncStatus.DIVERGED:
                return f"diverged (ahead {record.ahead_count}, behind {record.behind_count})"
            case SyncStatus.NO_UPSTREAM:
                return "no upstream"
            case SyncStatus.DETACHED:
                return "detached HEAD"
            case _:
                return "error"

    @staticmethod
    def _problem_line(summary: ScanSummary) -> Text | None:
        """Summary of errors and fetch problems, None when there are none."""
        parts = []
        if summary.errors:
            parts.append((f"Errors: {summary.errors}", "red"))
        if summary.fetch_failed:
            parts.append((f"Fetch failed: {summary.fetch_failed}", "red"))
        if summary.fetch_timed_out:
            parts.append((f"Fetch timed out: {summary.fetch_timed_out}", "yellow"))
        if not parts:
            return None

        line = Text()
        for i, (label, style) in enumerate(parts):
            if i:
                line.append(" | ")
            line.append(label, style=style)
        return line

    def render_config(
        self, config: ScanConfiguration, source: str | None, use_json: bool = False
    ) -> Text:
        """Render the merged configuration and where it came from."""
        if use_json:
            return Text(json.dumps({"source": source, "config": config.to_dict()}, indent=2))

        text = Text()
        text.append("Config file: ", style="bold")
        text.append(source or "none (using defaults)", style="dim" if source is None else "")
        text.append("\n")
        for key, value in config.to_dict().items():
            if isinstance(value, list):
                value = ", ".join(value) or "-"
            text.append(f"  {key}: ", style="cyan")
            text.append(f"{value}\n")
        text.rstrip()
        return text
