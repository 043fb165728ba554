"""
Organize pass for Prefix Organizer.

Scans the dump folder once and relocates every file to the first
destination rule that matches its name.  Files are handled one at a
time; a failure on one file is recorded and the pass carries on.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from prefix_organizer.errors import (
    DirectoryMissingError,
    FileError,
    NoRuleMatchedError,
    PermissionSyncError,
    ScanError,
)
from prefix_organizer.relocator import relocate
from prefix_organizer.rules import DestinationRule, first_match

logger = logging.getLogger(__name__)


@dataclass
class FileOutcome:
    """Record of what happened to one file during a pass."""
    source: Path
    destination: Path | None = None
    rule: DestinationRule | None = None
    moved: bool = False
    method: str = ""
    error: FileError | None = None
    warnings: list[PermissionSyncError] = field(default_factory=list)


@dataclass
class OrganizeOutcome:
    """Aggregate result of one organize pass."""
    moved: int = 0
    skipped: int = 0
    files: list[FileOutcome] = field(default_factory=list)
    started: float = 0.0
    finished: float = 0.0

    def add(self, outcome: FileOutcome) -> None:
        self.files.append(outcome)
        if outcome.moved:
            self.moved += 1
        else:
            self.skipped += 1

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0


def _list_files(dump_dir: Path) -> list[os.DirEntry]:
    try:
        with os.scandir(dump_dir) as it:
            entries = [e for e in it if not e.is_dir(follow_symlinks=False)]
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise DirectoryMissingError(
            f"Dump directory does not exist: {dump_dir}"
        ) from exc
    except OSError as exc:
        raise ScanError(f"failed to read dump directory {dump_dir}: {exc}") from exc
    entries.sort(key=lambda e: e.name)
    return entries


def organize(
    dump_dir: Path | str, rules: Sequence[DestinationRule]
) -> OrganizeOutcome:
    """
    Relocate every file directly inside *dump_dir* according to *rules*.

    Rules are tried in order and the first match wins, even when the
    relocation then fails.  Raises ``DirectoryMissingError`` or
    ``ScanError`` when the folder cannot be listed at all.
    """
    dump_dir = Path(dump_dir)
    outcome = OrganizeOutcome(started=time.time())

    for entry in _list_files(dump_dir):
        outcome.add(_organize_one(Path(entry.path), entry.name, rules))

    outcome.finished = time.time()
    logger.info(
        "Summary: %d files moved, %d files skipped",
        outcome.moved, outcome.skipped,
    )
    return outcome


def _organize_one(
    source: Path, filename: str, rules: Sequence[DestinationRule]
) -> FileOutcome:
    rec = FileOutcome(source=source)

    rule = first_match(filename, rules)
    if rule is None:
        rec.error = NoRuleMatchedError(f"No match found for: {filename}", source)
        logger.info("No match found for: %s", filename)
        return rec

    rec.rule = rule
    rec.destination = rule.target_directory / filename
    logger.info("Moving: %s -> %s", source, rec.destination)

    try:
        result = relocate(source, rec.destination)
    except FileError as exc:
        rec.error = exc
        logger.error("Error moving %s: %s", filename, exc)
        return rec

    rec.moved = True
    rec.method = result.method
    rec.warnings = result.warnings
    logger.info("Success: %s (%s)", filename, result.method)
    return rec


@dataclass
class OrganizerStats:
    """Running totals across organize passes."""
    total_passes: int = 0
    total_moved: int = 0
    total_skipped: int = 0
    failed_passes: int = 0
    last_pass: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, outcome: OrganizeOutcome) -> None:
        with self._lock:
            self.total_passes += 1
            self.total_moved += outcome.moved
            self.total_skipped += outcome.skipped
            self.last_pass = outcome.finished

    def record_failure(self) -> None:
        with self._lock:
            self.total_passes += 1
            self.failed_passes += 1
            self.last_pass = time.time()

