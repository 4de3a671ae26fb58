"""
Test source tree discovery.
"""

import os

import pytest

from mediabackup.scanner import scan_media


class TestScanMedia:

    def test_filters_by_extension(self, src):
        for name in ["a.jpg", "b.MP4", "c.flac", "notes.txt", "d.xmp", "Thumbs.db"]:
            (src / name).write_bytes(b"x")

        names = [m.name for m in scan_media(src)]

        assert names == ["a.jpg", "b.MP4", "c.flac"]

    def test_stable_sorted_order(self, src):
        for rel in ["z/1.jpg", "a/2.jpg", "a/b/3.jpg", "0.jpg"]:
            path = src / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"x")

        rels = [m.path.relative_to(src).as_posix() for m in scan_media(src)]

        assert rels == ["0.jpg", "a/2.jpg", "a/b/3.jpg", "z/1.jpg"]
        assert rels == [m.path.relative_to(src).as_posix() for m in scan_media(src)]

    def test_skips_hidden_directories_and_excluded_tree(self, src):
        (src / ".cache").mkdir()
        (src / ".cache" / "a.jpg").write_bytes(b"x")
        (src / "backup").mkdir()
        (src / "backup" / "b.jpg").write_bytes(b"x")
        (src / "c.jpg").write_bytes(b"x")

        names = [m.name for m in scan_media(src, exclude=src / "backup")]

        assert names == ["c.jpg"]

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_skips_symlinks(self, src, tmp_path):
        target = tmp_path / "elsewhere.jpg"
        target.write_bytes(b"x")
        (src / "link.jpg").symlink_to(target)

        assert list(scan_media(src)) == []

    def test_snapshot_fields(self, src):
        path = src / "Photo.JPG"
        path.write_bytes(b"12345")

        (media,) = list(scan_media(src))

        assert media.size == 5
        assert media.extension == ".jpg"
        assert media.modified.timestamp() == pytest.approx(path.stat().st_mtime, abs=1e-3)
