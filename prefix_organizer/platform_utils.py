"""
Cross-platform utilities for Prefix Organizer.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - macOS (LaunchAgent service)
  - Linux (systemd user service)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

APP_DIR_NAME = "prefix"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory (not created).

    ``$XDG_CONFIG_HOME/prefix`` (default ``~/.config/prefix``) on every
    platform, so the service units on macOS and Linux share one layout.
    """
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_DIR_NAME


def get_legacy_config_path() -> Path:
    """Return the pre-XDG config location, ``~/.prefix.yaml``."""
    return Path.home() / ".prefix.yaml"


def get_log_path() -> Path:
    """Return the path to the log file (inside the config directory)."""
    return get_config_dir() / "prefix.log"
