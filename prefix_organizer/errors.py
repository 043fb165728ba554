"""Exception hierarchy for Prefix Organizer.

Startup errors (config, missing dump folder, failed subscription) are
fatal.  Per-file errors derive from :class:`FileError` and are folded
into the skipped count of an organize pass.
"""

from __future__ import annotations

from pathlib import Path


class PrefixError(Exception):
    """Base error for the project."""


# ---- startup ----------------------------------------------------------

class ConfigError(PrefixError):
    """The rule source is unreadable or invalid."""


class DirectoryMissingError(PrefixError):
    """The dump directory does not exist (or is not a directory)."""


class WatchSubscribeError(PrefixError):
    """The filesystem notification subscription could not be set up."""


# ---- runtime ----------------------------------------------------------

class NotificationChannelError(PrefixError):
    """An event from the notification source could not be handled."""


class ScanError(PrefixError):
    """Listing the dump directory failed for a reason other than absence."""


# ---- per-file ---------------------------------------------------------

class FileError(PrefixError):
    """A single file could not be relocated."""

    def __init__(self, message: str, source: Path | None = None,
                 destination: Path | None = None):
        super().__init__(message)
        self.source = source
        self.destination = destination


class DirectoryCreateError(FileError):
    pass


class AlreadyExistsError(FileError):
    pass


class OpenSourceError(FileError):
    pass


class CreateDestError(FileError):
    pass


class CopyError(FileError):
    pass


class RemoveSourceError(FileError):
    pass


class NoRuleMatchedError(FileError):
    """No destination rule matched the filename (informational)."""


class PermissionSyncError(FileError):
    """Permission bits could not be copied; the file was still relocated."""
