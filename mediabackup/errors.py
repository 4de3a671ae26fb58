"""
Exception taxonomy for per-file and run-level backup failures.
"""

from pathlib import Path
from typing import Optional


class BackupError(Exception):
    """Base class for failures tied to a single file."""

    kind = "error"

    def __init__(self, path: Optional[Path], reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}" if path else reason)


class PathTooLong(BackupError):
    kind = "path-too-long"


class HashFailure(BackupError):
    kind = "hash-failure"


class MetadataUnavailable(BackupError):
    """The metadata provider has no usable entry (recovered via fallback)."""

    kind = "metadata-unavailable"


class DateParseFailure(BackupError):
    """A metadata date string matched no accepted format (recovered via fallback)."""

    kind = "date-parse-failure"

    def __init__(self, raw: str, path: Optional[Path] = None):
        self.raw = raw
        super().__init__(path, f"unrecognized date string {raw!r}")


class DirectoryCreateFailure(BackupError):
    kind = "directory-create-failure"


class CopyFailure(BackupError):
    kind = "copy-failure"


class AttributePreservationFailure(BackupError):
    """Timestamps or attributes could not be reapplied; the copy is kept."""

    kind = "attribute-preservation-failure"


class DestinationUnavailable(Exception):
    """The destination root vanished; the run cannot continue."""

    def __init__(self, dest: Path):
        self.dest = dest
        super().__init__(f"Destination is no longer available: {dest}")
