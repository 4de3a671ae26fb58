"""
Copying media into the destination tree with timestamp and attribute preservation.
"""

import errno
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from .constants import get_logger
from .errors import (AttributePreservationFailure, CopyFailure, DestinationUnavailable,
                     DirectoryCreateFailure, PathTooLong)
from .hashing import check_path_length
from .models import MediaFile, ResolvedDate

# Windows attribute bits restored on the copy
FILE_ATTRIBUTE_READONLY = 0x01
FILE_ATTRIBUTE_HIDDEN = 0x02
FILE_ATTRIBUTE_SYSTEM = 0x04
FILE_ATTRIBUTE_ARCHIVE = 0x20
PRESERVED_WINDOWS_ATTRIBUTES = (FILE_ATTRIBUTE_READONLY | FILE_ATTRIBUTE_HIDDEN |
                                FILE_ATTRIBUTE_SYSTEM | FILE_ATTRIBUTE_ARCHIVE)

# Seconds between 1601-01-01 (FILETIME epoch) and 1970-01-01
_FILETIME_EPOCH_OFFSET = 11644473600
PARTIAL_SUFFIX = ".partial"


def _set_windows_creation_time(path: Path, created: datetime) -> None:
    import ctypes
    from ctypes import wintypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    kernel32.CreateFileW.restype = wintypes.HANDLE
    handle = kernel32.CreateFileW(
        str(path), 0x0100,  # FILE_WRITE_ATTRIBUTES
        0x07, None, 3,  # share all, OPEN_EXISTING
        0x02000000, None)  # FILE_FLAG_BACKUP_SEMANTICS
    if handle in (None, wintypes.HANDLE(-1).value):
        raise ctypes.WinError(ctypes.get_last_error())

    try:
        ticks = int((created.timestamp() + _FILETIME_EPOCH_OFFSET) * 10_000_000)
        filetime = wintypes.FILETIME(ticks & 0xFFFFFFFF, ticks >> 32)
        if not kernel32.SetFileTime(handle, ctypes.byref(filetime), None, None):
            raise ctypes.WinError(ctypes.get_last_error())
    finally:
        kernel32.CloseHandle(handle)


def _set_windows_attributes(path: Path, attributes: int) -> None:
    import ctypes

    kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
    if not kernel32.SetFileAttributesW(str(path), attributes & PRESERVED_WINDOWS_ATTRIBUTES):
        raise ctypes.WinError(ctypes.get_last_error())


class FileOperations:
    """Copies files into the destination tree; performs no writes in preview mode."""

    def __init__(self, dest_root: Optional[Path], preview: bool = False):
        self.dest_root = dest_root
        self.preview = preview
        self.logger = get_logger("mediabackup.files")

    def destination_for(self, relpath: Path) -> Path:
        return self.dest_root / relpath if self.dest_root is not None else relpath

    def check_destination(self) -> None:
        """Raise DestinationUnavailable if the destination root has vanished."""
        if self.dest_root is not None and not self.dest_root.exists():
            raise DestinationUnavailable(self.dest_root)

    def ensure_directory(self, directory: Path) -> None:
        """Create directory and parents if needed."""
        if self.preview or directory.is_dir():
            return

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.check_destination()
            raise DirectoryCreateFailure(directory, e.strerror or str(e)) from e

    def copy_file(self, media: MediaFile, relpath: Path) -> Path:
        """Copy a source file to ``relpath`` under the destination root.

        Bytes land in a hidden ``.partial`` sibling first and are renamed into
        place, so an interrupted copy never leaves a truncated file under the
        final name. In preview mode only the would-be path is returned.
        """
        dest = self.destination_for(relpath)
        if self.dest_root is not None:
            check_path_length(dest)

        if self.preview:
            self.logger.info(f"[preview] {media.path} -> {dest}")
            return dest

        self.check_destination()
        self.ensure_directory(dest.parent)

        partial = dest.with_name(f".{dest.name}{PARTIAL_SUFFIX}")
        try:
            shutil.copyfile(media.path, partial)
            os.replace(partial, dest)
        except OSError as e:
            self._discard(partial)
            self.check_destination()
            if e.errno == errno.ENAMETOOLONG:
                raise PathTooLong(dest, str(e)) from e
            raise CopyFailure(media.path, e.strerror or str(e)) from e
        except BaseException:
            self._discard(partial)
            raise

        self.logger.info(f"{media.path} -> {dest}")
        return dest

    def _discard(self, partial: Path) -> None:
        try:
            partial.unlink(missing_ok=True)
        except OSError as e:
            self.logger.warning(f"Could not remove partial copy {partial}: {e}")

    def apply_attributes(self, media: MediaFile, dest: Path, resolved: ResolvedDate) -> None:
        """Reapply resolved timestamps and the source's attributes to ``dest``.

        Sets the creation time where the platform allows it, the modification
        time from ``resolved``, and the original access time. Raises
        AttributePreservationFailure; the copy itself is left in place.
        """
        if self.preview:
            return

        try:
            # Permission bits (read-only), BSD flags (hidden) and xattrs
            shutil.copystat(media.path, dest)

            accessed = media.accessed.timestamp()
            if os.name == "nt":
                _set_windows_creation_time(dest, resolved.created)
            else:
                # An mtime earlier than the birth time pulls the birth time
                # back on filesystems that track one
                os.utime(dest, (accessed, resolved.created.timestamp()))
            os.utime(dest, (accessed, resolved.modified.timestamp()))

            if os.name == "nt" and media.attributes:
                _set_windows_attributes(dest, media.attributes)
        except OSError as e:
            raise AttributePreservationFailure(dest, e.strerror or str(e)) from e
