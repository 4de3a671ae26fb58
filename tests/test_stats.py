"""
Test run statistics accumulation and summary rendering.
"""

import io
import threading
from pathlib import Path

import pytest
from rich.console import Console

from mediabackup.errors import AttributePreservationFailure, CopyFailure
from mediabackup.stats import BackupRecord, format_size


def render_text(record: BackupRecord) -> str:
    console = Console(file=io.StringIO(), width=160, color_system=None)
    console.print(record.render())
    return console.file.getvalue()


class TestFormatSize:

    @pytest.mark.parametrize("num_bytes, expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (50 * 1024, "50.0 KB"),
        (int(1.5 * 1024 ** 2), "1.5 MB"),
        (3 * 1024 ** 3, "3.0 GB"),
        (2 * 1024 ** 4, "2.0 TB"),
    ])
    def test_units(self, num_bytes, expected):
        assert format_size(num_bytes) == expected


class TestBackupRecord:

    def test_counters(self, src, make_media):
        small = make_media(src / "small.jpg", size=100)
        big = make_media(src / "big.jpg", size=4096)
        dupe = make_media(src / "dupe.jpg", size=4096)

        record = BackupRecord()
        record.record_skipped_small(small)
        record.record_copied(big, Path("Images/2020-01/x.jpg"))
        record.record_timestamp_fix(big)
        record.record_duplicate(dupe)
        record.record_error(dupe, CopyFailure(dupe.path, "disk full"))

        stats = record.get_stats()
        assert stats['processed'] == 4
        assert stats['copied'] == 1
        assert stats['skipped_small'] == 1
        assert stats['duplicates'] == 1
        assert stats['timestamp_fixes'] == 1
        assert stats['total_bytes'] == 4096
        assert stats['saved_bytes'] == 4096
        assert record.errors == [(str(dupe.path), "disk full")]
        assert record.placements == [(big.path, Path("Images/2020-01/x.jpg"))]
        assert record.has_errors()

    def test_concurrent_increments(self, src, make_media):
        media = make_media(src / "a.jpg", size=10)
        record = BackupRecord()

        def work():
            for _ in range(500):
                record.record_duplicate(media)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert record.get_duplicates() == 4000
        assert record.get_saved_bytes() == 40000

    def test_render_lists_errors(self, src, make_media):
        media = make_media(src / "broken.jpg", size=10)
        record = BackupRecord()
        record.record_error(media, CopyFailure(media.path, "Permission denied"))

        text = render_text(record)

        assert "Backup Summary" in text
        assert "Errors" in text
        assert "broken.jpg: Permission denied" in text

    def test_render_lists_attribute_warnings(self, src, dest, make_media):
        media = make_media(src / "locked.jpg", size=10)
        record = BackupRecord()
        record.record_copied(media, dest / "x.jpg")
        record.record_attribute_warning(
            media, AttributePreservationFailure(dest / "x.jpg", "Operation not permitted"))

        text = render_text(record)

        assert record.attribute_warnings == [(str(media.path), "Operation not permitted")]
        assert "1 file(s) copied without original attributes" in text
        assert "locked.jpg: Operation not permitted" in text
        assert "failed" not in text

    def test_render_preview_and_cancelled(self):
        record = BackupRecord(preview=True)
        record.mark_cancelled()

        text = render_text(record)

        assert "(preview)" in text
        assert "(cancelled)" in text
        assert "Would Back Up" in text
        assert "failed" not in text
