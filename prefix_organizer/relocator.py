"""
File relocation for Prefix Organizer.

Moves one file from the dump folder into its destination folder.
On the same filesystem the file is hard-linked into place and the
dump entry unlinked; linking refuses an existing name, so a file that
shows up at the destination mid-move is never replaced.  When linking
fails (for example across devices) the file is streamed into a
freshly created destination, its permission bits are copied over, and
the source is removed.  An existing destination is never overwritten.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from prefix_organizer.errors import (
    AlreadyExistsError,
    CopyError,
    CreateDestError,
    DirectoryCreateError,
    OpenSourceError,
    PermissionSyncError,
    RemoveSourceError,
)

logger = logging.getLogger(__name__)

METHOD_RENAME = "rename"
METHOD_COPY = "copy"

_COPY_CHUNK = 256 * 1024  # 256 KiB read chunks


@dataclass
class RelocateResult:
    """Outcome of a successful relocation."""
    source: Path
    destination: Path
    method: str = METHOD_RENAME
    size_bytes: int = 0
    warnings: list[PermissionSyncError] = field(default_factory=list)


def relocate(source: Path | str, destination: Path | str) -> RelocateResult:
    """
    Move *source* to *destination*.

    Returns a :class:`RelocateResult` on success.  Raises a
    :class:`~prefix_organizer.errors.FileError` subclass naming the step
    that failed otherwise.  Nothing is retried.
    """
    source = Path(source)
    destination = Path(destination)

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryCreateError(
            f"failed to create destination directory {destination.parent}: {exc}",
            source, destination,
        ) from exc

    if os.path.lexists(destination):
        raise AlreadyExistsError(
            f"destination file already exists: {destination}",
            source, destination,
        )

    try:
        os.link(source, destination, follow_symlinks=False)
    except FileExistsError as exc:
        raise AlreadyExistsError(
            f"destination file already exists: {destination}",
            source, destination,
        ) from exc
    except OSError as exc:
        logger.debug(
            "Link %s -> %s failed (%s); falling back to copy",
            source, destination, exc,
        )
        return _copy_then_remove(source, destination)

    try:
        os.unlink(source)
    except OSError as exc:
        _drop_link(destination)
        raise RemoveSourceError(
            f"failed to remove source file {source}: {exc}", source, destination,
        ) from exc
    return RelocateResult(source, destination, METHOD_RENAME)


def _drop_link(destination: Path) -> None:
    # Leave the file only in the dump folder.
    try:
        os.unlink(destination)
    except OSError as exc:
        logger.warning("Could not remove new link %s: %s", destination, exc)


def _copy_then_remove(source: Path, destination: Path) -> RelocateResult:
    result = RelocateResult(source, destination, METHOD_COPY)

    try:
        src_fh = open(source, "rb")
    except OSError as exc:
        raise OpenSourceError(
            f"failed to open source file {source}: {exc}", source, destination,
        ) from exc

    with src_fh:
        try:
            # Exclusive create: a file that appeared since the existence
            # check is left alone.
            dst_fh = open(destination, "xb")
        except FileExistsError as exc:
            raise AlreadyExistsError(
                f"destination file already exists: {destination}",
                source, destination,
            ) from exc
        except OSError as exc:
            raise CreateDestError(
                f"failed to create destination file {destination}: {exc}",
                source, destination,
            ) from exc

        try:
            with dst_fh:
                shutil.copyfileobj(src_fh, dst_fh, _COPY_CHUNK)
                result.size_bytes = dst_fh.tell()
        except OSError as exc:
            # The partial destination is left in place.
            raise CopyError(
                f"failed to copy {source} -> {destination}: {exc}",
                source, destination,
            ) from exc

    try:
        shutil.copymode(source, destination)
    except OSError as exc:
        warning = PermissionSyncError(
            f"failed to copy permissions onto {destination}: {exc}",
            source, destination,
        )
        result.warnings.append(warning)
        logger.warning("%s", warning)

    try:
        os.remove(source)
    except OSError as exc:
        raise RemoveSourceError(
            f"failed to remove source file {source}: {exc}", source, destination,
        ) from exc

    return result
