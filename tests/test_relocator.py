from __future__ import annotations

import errno
import stat
from pathlib import Path

import pytest

from prefix_organizer import relocator
from prefix_organizer.errors import (
    AlreadyExistsError,
    CopyError,
    CreateDestError,
    DirectoryCreateError,
    FileError,
    OpenSourceError,
    RemoveSourceError,
)
from prefix_organizer.relocator import METHOD_COPY, METHOD_RENAME, relocate

PAYLOAD = b"col1,col2\n" * 50_000


@pytest.fixture
def source(tmp_path: Path) -> Path:
    dump = tmp_path / "dump"
    dump.mkdir()
    path = dump / "report_2024.csv"
    path.write_bytes(PAYLOAD)
    return path


@pytest.fixture
def cross_device(monkeypatch, tmp_path):
    """Make every hard link fail the way it does across filesystems."""

    def fake_link(src, dst, *, follow_symlinks=True):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(relocator.os, "link", fake_link)


class TestRename:
    def test_moves_file(self, source: Path, tmp_path: Path) -> None:
        dest = tmp_path / "archive" / source.name

        result = relocate(source, dest)

        assert result.method == METHOD_RENAME
        assert not source.exists()
        assert dest.read_bytes() == PAYLOAD

    def test_creates_missing_parent_directories(self, source: Path, tmp_path: Path) -> None:
        dest = tmp_path / "a" / "b" / "c" / source.name

        relocate(source, dest)

        assert dest.exists()

    def test_never_overwrites_existing_destination(self, source: Path, tmp_path: Path) -> None:
        dest = tmp_path / "archive" / source.name
        dest.parent.mkdir()
        dest.write_bytes(b"original")

        with pytest.raises(AlreadyExistsError) as excinfo:
            relocate(source, dest)

        assert dest.read_bytes() == b"original"
        assert source.read_bytes() == PAYLOAD
        assert excinfo.value.source == source
        assert excinfo.value.destination == dest

    def test_parent_creation_failure(self, source: Path, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(DirectoryCreateError):
            relocate(source, blocker / "sub" / source.name)

        assert source.exists()

    def test_destination_appearing_after_check_is_not_overwritten(
        self, source: Path, tmp_path: Path, monkeypatch
    ) -> None:
        dest = tmp_path / "archive" / source.name
        dest.parent.mkdir()
        dest.write_bytes(b"someone else")
        # Simulate the file being created right after the existence check.
        monkeypatch.setattr(relocator.os.path, "lexists", lambda path: False)

        with pytest.raises(AlreadyExistsError) as excinfo:
            relocate(source, dest)

        assert isinstance(excinfo.value.__cause__, FileExistsError)
        assert dest.read_bytes() == b"someone else"
        assert source.read_bytes() == PAYLOAD

    def test_unlink_failure_keeps_file_only_in_dump(
        self, source: Path, tmp_path: Path, monkeypatch
    ) -> None:
        real_unlink = relocator.os.unlink

        def fail_source_unlink(path, *args, **kwargs):
            if Path(path) == source:
                raise PermissionError(errno.EACCES, "Permission denied")
            return real_unlink(path, *args, **kwargs)

        monkeypatch.setattr(relocator.os, "unlink", fail_source_unlink)
        dest = tmp_path / "archive" / source.name

        with pytest.raises(RemoveSourceError):
            relocate(source, dest)

        assert source.read_bytes() == PAYLOAD
        assert not dest.exists()

    def test_symlink_is_moved_as_link(self, tmp_path: Path) -> None:
        target = tmp_path / "target.txt"
        target.write_text("data")
        link = tmp_path / "dump" / "report_link"
        link.parent.mkdir()
        link.symlink_to(target)
        dest = tmp_path / "archive" / link.name

        relocate(link, dest)

        assert dest.is_symlink()
        assert not link.is_symlink()
        assert target.read_text() == "data"

    def test_missing_source_reports_open_error(self, tmp_path: Path) -> None:
        with pytest.raises(OpenSourceError):
            relocate(tmp_path / "gone.txt", tmp_path / "dest" / "gone.txt")


@pytest.mark.usefixtures("cross_device")
class TestCopyFallback:
    def test_copy_is_byte_identical_and_removes_source(self, source: Path, tmp_path: Path) -> None:
        dest = tmp_path / "other" / source.name

        result = relocate(source, dest)

        assert result.method == METHOD_COPY
        assert result.size_bytes == len(PAYLOAD)
        assert result.warnings == []
        assert dest.read_bytes() == PAYLOAD
        assert not source.exists()

    def test_copies_permission_bits(self, source: Path, tmp_path: Path) -> None:
        source.chmod(0o640)
        dest = tmp_path / "other" / source.name

        relocate(source, dest)

        assert stat.S_IMODE(dest.stat().st_mode) == 0o640

    def test_permission_failure_is_only_a_warning(self, source: Path, tmp_path: Path, monkeypatch) -> None:
        def fail_copymode(src, dst):
            raise PermissionError(errno.EPERM, "Operation not permitted")

        monkeypatch.setattr(relocator.shutil, "copymode", fail_copymode)
        dest = tmp_path / "other" / source.name

        result = relocate(source, dest)

        assert len(result.warnings) == 1
        assert dest.read_bytes() == PAYLOAD
        assert not source.exists()

    def test_stream_failure_leaves_source_in_place(self, source: Path, tmp_path: Path, monkeypatch) -> None:
        def fail_copy(fsrc, fdst, length=0):
            fdst.write(b"partial")
            raise OSError(errno.ENOSPC, "No space left on device")

        monkeypatch.setattr(relocator.shutil, "copyfileobj", fail_copy)
        dest = tmp_path / "other" / source.name

        with pytest.raises(CopyError) as excinfo:
            relocate(source, dest)

        assert isinstance(excinfo.value.__cause__, OSError)
        assert source.read_bytes() == PAYLOAD
        # The incomplete destination is not cleaned up.
        assert dest.read_bytes() == b"partial"

    def test_remove_failure(self, source: Path, tmp_path: Path, monkeypatch) -> None:
        def fail_remove(path):
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(relocator.os, "remove", fail_remove)
        dest = tmp_path / "other" / source.name

        with pytest.raises(RemoveSourceError):
            relocate(source, dest)

        assert dest.read_bytes() == PAYLOAD
        assert source.exists()

    def test_create_destination_failure(self, source: Path, tmp_path: Path, monkeypatch) -> None:
        def fake_open(path, mode="r", *args, **kwargs):
            if "x" in mode:
                raise PermissionError(errno.EACCES, "Permission denied")
            return open(path, mode, *args, **kwargs)

        monkeypatch.setattr(relocator, "open", fake_open, raising=False)

        with pytest.raises(CreateDestError):
            relocate(source, tmp_path / "other" / source.name)

        assert source.exists()

    def test_destination_appearing_mid_move_is_not_overwritten(
        self, source: Path, tmp_path: Path, monkeypatch
    ) -> None:
        dest = tmp_path / "other" / source.name

        def racing_open(path, mode="r", *args, **kwargs):
            if "x" in mode:
                Path(path).write_bytes(b"someone else")
            return open(path, mode, *args, **kwargs)

        monkeypatch.setattr(relocator, "open", racing_open, raising=False)

        with pytest.raises(AlreadyExistsError):
            relocate(source, dest)

        assert dest.read_bytes() == b"someone else"
        assert source.read_bytes() == PAYLOAD


def test_all_relocation_errors_are_file_errors() -> None:
    for cls in (
        AlreadyExistsError,
        CopyError,
        CreateDestError,
        DirectoryCreateError,
        OpenSourceError,
        RemoveSourceError,
    ):
        assert issubclass(cls, FileError)
