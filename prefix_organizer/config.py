"""Configuration management for Prefix Organizer.

Reads the dump folder and the ordered destination rules from a YAML
file.  The file is looked up in the platform config directory unless a
path is given explicitly or through ``PREFIX_CONFIG``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from prefix_organizer.errors import ConfigError
from prefix_organizer.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from prefix_organizer.platform_utils import (
    get_legacy_config_path,
)
from prefix_organizer.platform_utils import (
    get_log_path as _platform_log_path,
)
from prefix_organizer.rules import DestinationRule

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PREFIX_CONFIG"
CONFIG_FILE_NAME = "prefix.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "dump_directory": "",
    "debounce_seconds": 5,
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

CONFIG_TEMPLATE = """\
# Prefix Organizer configuration.
#
# Files dropped into dump_directory are moved to the first destination
# whose prefix and/or suffix matches the filename.  Order matters.

dump_directory: ~/Downloads

destinations:
  # - path: ~/Documents/Reports
  #   prefix: report_
  # - path: ~/Documents/Spreadsheets
  #   suffix: .csv
  # - path: ~/Pictures/Screenshots
  #   prefix: Screenshot
  #   suffix: .png

# Seconds of quiet in the dump directory before a pass runs.
debounce_seconds: 5
log_level: INFO
"""


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file.

    ``$PREFIX_CONFIG`` wins; otherwise the file in the config directory,
    or the legacy ``~/.prefix.yaml`` when only that one exists.
    """
    env = os.environ.get(CONFIG_ENV_VAR)
    if env:
        return Path(os.path.expanduser(env))
    path = get_config_dir() / CONFIG_FILE_NAME
    legacy = get_legacy_config_path()
    if not path.exists() and legacy.exists():
        return legacy
    return path


def get_log_path() -> Path:
    """Return the path to the log file."""
    return _platform_log_path()


def _expand_path(value: str) -> Path:
    return Path(os.path.expanduser(os.path.expandvars(value)))


def _rule_text(value: Any, key: str, index: int) -> str:
    """Return a rule's prefix or suffix as text.

    YAML turns unquoted patterns such as ``2024`` or ``false`` into
    numbers and booleans; they are matched by their text form.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        raise ConfigError(f"destinations[{index}]: '{key}' must be a string")
    return str(value)


def write_template(path: Path) -> None:
    """Write a commented starter configuration to *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "x", encoding="utf-8") as fh:
        fh.write(CONFIG_TEMPLATE)


class Config:
    """Validated configuration backed by a YAML file."""

    def __init__(self, data: dict[str, Any] | None = None, path: Path | None = None):
        """Wrap already-parsed *data*, validating it."""
        self._path = path
        self._data: dict[str, Any] = {**DEFAULT_CONFIG, **(data or {})}
        self._validate()
        self._rules = self._parse_rules(self._data["destinations"])

    @classmethod
    def load(cls, path: Path | str | None = None) -> Config:
        """
        Load configuration from *path* (default: :func:`get_config_path`).

        A missing file is replaced with a starter template and reported as
        a ``ConfigError`` so the user can fill it in.
        """
        path = Path(path) if path else get_config_path()
        if not path.exists():
            try:
                write_template(path)
            except OSError as exc:
                raise ConfigError(
                    f"Config file not found at {path} and a template could "
                    f"not be created: {exc}"
                ) from exc
            logger.info("Created a new config file at %s", path)
            raise ConfigError(
                f"Config file not found; created a template at {path}. "
                "Add the dump directory and destinations, then restart."
            )

        try:
            with open(path, encoding="utf-8") as fh:
                stored = yaml.safe_load(fh) or {}
        except OSError as exc:
            raise ConfigError(f"failed to read config file {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"failed to parse YAML in {path}: {exc}") from exc

        if not isinstance(stored, dict):
            raise ConfigError(f"{path}: top level must be a mapping")

        config = cls(stored, path)
        logger.info("Configuration loaded from %s", path)
        return config

    # ---- validation ----

    @staticmethod
    def _parse_rules(raw: Any) -> tuple[DestinationRule, ...]:
        if raw is None:
            logger.warning("No destinations configured; every file will be skipped")
            return ()
        if not isinstance(raw, list):
            raise ConfigError("'destinations' must be a list")
        rules = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                raise ConfigError(f"destinations[{index}] must be a mapping")
            target = item.get("path")
            if not isinstance(target, str) or not target.strip():
                raise ConfigError(f"destinations[{index}] needs a 'path'")
            prefix = _rule_text(item.get("prefix"), "prefix", index)
            suffix = _rule_text(item.get("suffix"), "suffix", index)
            rule = DestinationRule(_expand_path(target.strip()), prefix, suffix)
            if rule.is_empty:
                logger.warning(
                    "destinations[%d] (%s) has no prefix or suffix and will "
                    "never match", index, rule.target_directory,
                )
            rules.append(rule)
        return tuple(rules)

    def _validate(self) -> None:
        dump = self._data["dump_directory"]
        if not isinstance(dump, str) or not dump.strip():
            raise ConfigError("'dump_directory' must be set")
        try:
            debounce = float(self._data["debounce_seconds"])
        except (TypeError, ValueError) as exc:
            raise ConfigError("'debounce_seconds' must be a number") from exc
        if debounce <= 0:
            raise ConfigError("'debounce_seconds' must be greater than zero")
        if str(self._data["log_level"]).upper() not in _LOG_LEVELS:
            raise ConfigError(f"unknown log_level {self._data['log_level']!r}")
        for key in ("max_log_size_mb", "log_backup_count"):
            try:
                int(self._data[key])
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"'{key}' must be an integer") from exc
        if "destinations" not in self._data:
            raise ConfigError("'destinations' is required")

    # ---- accessors ----

    @property
    def path(self) -> Path | None:
        """Return the file this configuration was read from, if any."""
        return self._path

    @property
    def dump_directory(self) -> Path:
        """Return the watched dump folder."""
        return _expand_path(self._data["dump_directory"].strip())

    @property
    def rules(self) -> tuple[DestinationRule, ...]:
        """Return the destination rules in match order."""
        return self._rules

    @property
    def debounce_seconds(self) -> float:
        """Return the quiet period before an organize pass."""
        return float(self._data["debounce_seconds"])

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return str(self._data["log_level"]).upper()

    # ---- log rotation ----

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation (minimum 1)."""
        return max(1, int(self._data["max_log_size_mb"]))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return max(0, int(self._data["log_backup_count"]))
