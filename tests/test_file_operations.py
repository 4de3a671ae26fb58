"""
Test copying, preview behavior, and timestamp/attribute preservation.
"""

import os
import shutil
import stat
from datetime import datetime
from pathlib import Path

import pytest

from mediabackup import file_operations
from mediabackup.errors import (AttributePreservationFailure, CopyFailure, DestinationUnavailable,
                                DirectoryCreateFailure, PathTooLong)
from mediabackup.file_operations import FileOperations
from mediabackup.models import MediaFile, Provenance, ResolvedDate

RELPATH = Path("Images") / "2020-01" / "20200101_120000_0123456789ab.jpg"


def resolved_at(created, modified=None):
    return ResolvedDate(created=created, modified=modified or created,
                        provenance=Provenance.METADATA)


class TestCopy:

    def test_copy_creates_directories(self, src, dest, make_media):
        media = make_media(src / "a.jpg", content=b"jpeg bytes" * 500)
        dest.mkdir()

        copied = FileOperations(dest).copy_file(media, RELPATH)

        assert copied == dest / RELPATH
        assert copied.read_bytes() == media.path.read_bytes()
        assert media.path.exists(), "Source must be left in place"
        assert not list(copied.parent.glob(".*.partial"))

    def test_preview_writes_nothing(self, src, dest, make_media):
        media = make_media(src / "a.jpg")

        ops = FileOperations(dest, preview=True)
        copied = ops.copy_file(media, RELPATH)
        ops.apply_attributes(media, copied, resolved_at(datetime(2020, 1, 1)))

        assert copied == dest / RELPATH
        assert not dest.exists()

    def test_preview_without_destination(self, src, make_media):
        media = make_media(src / "a.jpg")
        assert FileOperations(None, preview=True).copy_file(media, RELPATH) == RELPATH

    @pytest.mark.skipif(os.name == "nt", reason="POSIX path limits")
    @pytest.mark.parametrize("preview", [False, True])
    def test_overlong_destination(self, src, tmp_path, make_media, preview):
        media = make_media(src / "a.jpg")
        deep = tmp_path.joinpath(*(["d" * 200] * 30))

        with pytest.raises(PathTooLong):
            FileOperations(deep, preview=preview).copy_file(media, RELPATH)

    def test_missing_source_is_copy_failure(self, src, dest, make_media):
        media = make_media(src / "a.jpg")
        media.path.unlink()
        dest.mkdir()

        with pytest.raises(CopyFailure):
            FileOperations(dest).copy_file(media, RELPATH)
        assert not list((dest / RELPATH).parent.glob(".*.partial"))
        assert not (dest / RELPATH).exists()

    def test_blocked_directory_is_directory_failure(self, src, dest, make_media):
        media = make_media(src / "a.jpg")
        dest.mkdir()
        (dest / "Images").write_bytes(b"a file where a folder belongs")

        with pytest.raises(DirectoryCreateFailure):
            FileOperations(dest).copy_file(media, RELPATH)

    def test_vanished_destination(self, src, dest, make_media):
        media = make_media(src / "a.jpg")
        dest.mkdir()
        ops = FileOperations(dest)
        shutil.rmtree(dest)

        with pytest.raises(DestinationUnavailable):
            ops.copy_file(media, RELPATH)
        assert not dest.exists()

    def test_interrupted_copy_leaves_no_partial(self, src, dest, make_media, monkeypatch):
        media = make_media(src / "a.jpg")
        dest.mkdir()

        def interrupted(source, target):
            Path(target).write_bytes(b"half")
            raise KeyboardInterrupt

        monkeypatch.setattr(file_operations.shutil, "copyfile", interrupted)
        with pytest.raises(KeyboardInterrupt):
            FileOperations(dest).copy_file(media, RELPATH)

        folder = (dest / RELPATH).parent
        assert list(folder.iterdir()) == []


class TestAttributes:

    def test_timestamps_reapplied(self, src, dest, make_media):
        media = make_media(src / "a.jpg", mtime=datetime(2024, 6, 1, 12, 0, 0))
        dest.mkdir()
        ops = FileOperations(dest)
        copied = ops.copy_file(media, RELPATH)

        taken = datetime(2020, 1, 1, 12, 0, 0)
        ops.apply_attributes(media, copied, resolved_at(taken))

        st = copied.stat()
        assert st.st_mtime == pytest.approx(taken.timestamp(), abs=1)
        assert st.st_atime == pytest.approx(media.accessed.timestamp(), abs=1)

    def test_corrected_dates_reapplied(self, src, dest, make_media):
        media = make_media(src / "a.mp3", mtime=datetime(2022, 3, 3, 3, 3, 3))
        dest.mkdir()
        ops = FileOperations(dest)
        copied = ops.copy_file(media, RELPATH)

        resolved = ResolvedDate(created=datetime(2021, 1, 1), modified=datetime(2022, 3, 3, 3, 3, 3),
                                provenance=Provenance.FILESYSTEM_CORRECTED)
        ops.apply_attributes(media, copied, resolved)

        assert copied.stat().st_mtime == pytest.approx(resolved.modified.timestamp(), abs=1)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
    def test_read_only_preserved(self, src, dest, make_media):
        path = src / "locked.jpg"
        make_media(path)
        os.chmod(path, 0o444)
        media = MediaFile.from_path(path)
        dest.mkdir()

        ops = FileOperations(dest)
        copied = ops.copy_file(media, RELPATH)
        ops.apply_attributes(media, copied, resolved_at(datetime(2020, 1, 1)))

        assert stat.S_IMODE(copied.stat().st_mode) == 0o444
        os.chmod(copied, 0o644)

    def test_failure_raises_preservation_error(self, src, dest, make_media, monkeypatch):
        media = make_media(src / "a.jpg")
        dest.mkdir()
        ops = FileOperations(dest)
        copied = ops.copy_file(media, RELPATH)

        def refuse(*args, **kwargs):
            raise PermissionError(1, "Operation not permitted")

        monkeypatch.setattr(file_operations.os, "utime", refuse)
        with pytest.raises(AttributePreservationFailure):
            ops.apply_attributes(media, copied, resolved_at(datetime(2020, 1, 1)))
        assert copied.exists(), "The copy stands even when attributes fail"
