"""Scan configuration: defaults, TOML config file and CLI overrides."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .log import get_logger

logger = get_logger()

CONFIG_ENV_VAR = "GIT_PENDING_CONFIG"

DEFAULT_ROOTS = (".",)
DEFAULT_MAX_DEPTH = 3
DEFAULT_FETCH_TIMEOUT = 5.0
DEFAULT_MAX_CONCURRENCY = 8


class OutputFormat(StrEnum):
    """Report output format."""

    TEXT = "text"
    JSON = "json"


@dataclass(frozen=True)
class ScanConfiguration:
    """Merged, immutable view of all settings for one run."""

    roots: tuple[Path, ...] = (Path("."),)
    ignore_patterns: tuple[str, ...] = ()
    max_depth: int = DEFAULT_MAX_DEPTH
    fetch_enabled: bool = False
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    verbose: bool = False
    output_format: OutputFormat = OutputFormat.TEXT
    changes_only: bool = False

    def __post_init__(self):
        if self.max_depth < 0:
            raise ConfigError(f"depth must be >= 0, got {self.max_depth}")
        if self.fetch_timeout <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.fetch_timeout}")
        if self.max_concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.max_concurrency}")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["roots"] = [str(r) for r in self.roots]
        data["ignore_patterns"] = list(self.ignore_patterns)
        data["output_format"] = self.output_format.value
        return data


@dataclass
class FileSettings:
    """Values read from a config file. ``None`` means "not set in the file"."""

    source: Path | None = None
    roots: list[str] | None = None
    ignore: list[str] = field(default_factory=list)
    depth: int | None = None
    fetch: bool | None = None
    timeout: float | None = None
    concurrency: int | None = None
    format: OutputFormat | None = None
    verbose: bool | None = None
    changes_only: bool | None = None


@dataclass
class CliOverrides:
    """Options given on the command line. ``None`` means "not given"."""

    roots: list[str] = field(default_factory=list)
    add_roots: bool = False
    ignore: list[str] = field(default_factory=list)
    depth: int | None = None
    fetch: bool | None = None
    timeout: float | None = None
    concurrency: int | None = None
    format: OutputFormat | None = None
    verbose: bool | None = None
    changes_only: bool | None = None


def default_config_path() -> Path:
    """Return the XDG config file location."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "git-pending" / "config.toml"


def resolve_config_file(explicit: Path | None = None) -> tuple[Path, bool]:
    """Resolve which config file to read.

    Priority order:
    1. explicit path (``--config``)
    2. $GIT_PENDING_CONFIG environment variable
    3. $XDG_CONFIG_HOME/git-pending/config.toml (or ~/.config/...)

    Returns:
        tuple of (path, required). A required file that is missing is an error.
    """
    if explicit is not None:
        return explicit.expanduser(), True

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser(), True

    return default_config_path(), False


def expand_path(raw: str) -> Path:
    """Expand environment variables first, then tilde."""
    return Path(os.path.expandvars(raw)).expanduser()


_INT_KEYS = {"depth", "concurrency"}
_BOOL_KEYS = {"fetch", "verbose", "changes_only"}
_LIST_KEYS = {"roots", "ignore"}
_KNOWN_KEYS = _INT_KEYS | _BOOL_KEYS | _LIST_KEYS | {"timeout", "format"}


def parse_settings(data: dict[str, Any], source: Path | None = None) -> FileSettings:
    """Validate a decoded TOML document and turn it into FileSettings."""
    table = data.get("defaults", data)
    if not isinstance(table, dict):
        raise ConfigError("[defaults] must be a table", source)

    settings = FileSettings(source=source)
    for key, value in table.items():
        if key == "defaults" or isinstance(value, dict):
            continue
        if key not in _KNOWN_KEYS:
            logger.warning("Ignoring unknown config key '%s' in %s", key, source)
            continue

        if key in _LIST_KEYS:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"'{key}' must be a list of strings", source)
        elif key in _BOOL_KEYS:
            if not isinstance(value, bool):
                raise ConfigError(f"'{key}' must be true or false", source)
        elif key in _INT_KEYS:
            # bool is an int subclass
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"'{key}' must be an integer", source)
        elif key == "timeout":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError("'timeout' must be a number of seconds", source)
            value = float(value)
        elif key == "format":
            try:
                value = OutputFormat(value)
            except ValueError:
                raise ConfigError(f"'format' must be 'text' or 'json', got {value!r}", source)

        setattr(settings, key, value)

    return settings


def load_settings(path: Path | None = None, *, use_file: bool = True) -> FileSettings:
    """Load settings from the resolved config file.

    A missing default config file yields empty settings; everything else that
    goes wrong raises ConfigError.
    """
    if not use_file:
        return FileSettings()

    config_path, required = resolve_config_file(path)
    if not config_path.exists():
        if required:
            raise ConfigError("config file does not exist", config_path)
        logger.debug("No config file at %s, using defaults", config_path)
        return FileSettings()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"failed to parse config file: {e}", config_path) from e
    except OSError as e:
        raise ConfigError(f"failed to read config file: {e}", config_path) from e

    logger.info("Loaded configuration from %s", config_path)
    return parse_settings(data, config_path)


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def build_configuration(settings: FileSettings, cli: CliOverrides) -> ScanConfiguration:
    """Merge defaults, file settings and CLI overrides (CLI > file > default)."""
    file_roots = settings.roots if settings.roots is not None else list(DEFAULT_ROOTS)
    if cli.roots and cli.add_roots:
        raw_roots = file_roots + cli.roots
    elif cli.roots:
        raw_roots = cli.roots
    else:
        raw_roots = file_roots

    roots: list[Path] = []
    for raw in raw_roots:
        root = expand_path(raw).absolute()
        if root not in roots:
            roots.append(root)

    ignore: list[str] = []
    for pattern in [*settings.ignore, *cli.ignore]:
        if pattern not in ignore:
            ignore.append(pattern)

    return ScanConfiguration(
        roots=tuple(roots),
        ignore_patterns=tuple(ignore),
        max_depth=_first(cli.depth, settings.depth, DEFAULT_MAX_DEPTH),
        fetch_enabled=_first(cli.fetch, settings.fetch, False),
        fetch_timeout=float(_first(cli.timeout, settings.timeout, DEFAULT_FETCH_TIMEOUT)),
        max_concurrency=_first(cli.concurrency, settings.concurrency, DEFAULT_MAX_CONCURRENCY),
        verbose=_first(cli.verbose, settings.verbose, False),
        output_format=_first(cli.format, settings.format, OutputFormat.TEXT),
        changes_only=_first(cli.changes_only, settings.changes_only, False),
    )
