"""
Data model shared across the backup pipeline.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional


class Category(str, Enum):
    """Top-level destination folder."""
    IMAGES = "Images"
    VIDEOS = "Videos"
    AUDIO = "Audio"
    OTHER = "Other"


class Provenance(str, Enum):
    """Where a resolved date came from."""
    METADATA = "metadata"
    FILESYSTEM_CORRECTED = "filesystem-corrected"


class FileState(str, Enum):
    """Per-file processing states."""
    DISCOVERED = "discovered"
    SIZE_CHECKED = "size-checked"
    SKIPPED_SMALL = "skipped-small"
    HASHED = "hashed"
    DUPLICATE_RECORDED = "duplicate-recorded"
    DATE_RESOLVED = "date-resolved"
    CLASSIFIED = "classified"
    PREVIEW_RECORDED = "preview-recorded"
    COPIED = "copied"
    ATTRIBUTES_APPLIED = "attributes-applied"
    RECORDED = "recorded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({
    FileState.RECORDED, FileState.PREVIEW_RECORDED, FileState.SKIPPED_SMALL,
    FileState.DUPLICATE_RECORDED, FileState.FAILED,
})


@dataclass(frozen=True)
class MediaFile:
    """Immutable snapshot of a source file taken at discovery time."""
    path: Path
    size: int
    extension: str
    created: datetime
    modified: datetime
    accessed: datetime
    attributes: int = 0  # st_file_attributes on Windows, st_flags on BSD/macOS
    mode: int = 0o644

    @classmethod
    def from_path(cls, path: Path) -> "MediaFile":
        """Stat a file and capture its size, timestamps, and attributes."""
        st = os.stat(path, follow_symlinks=False)

        # st_birthtime is the real creation time where the platform has one;
        # elsewhere st_ctime is the closest approximation
        birthtime = getattr(st, "st_birthtime", None)
        created = birthtime if birthtime else st.st_ctime

        attributes = getattr(st, "st_file_attributes", None)
        if attributes is None:
            attributes = getattr(st, "st_flags", 0)

        return cls(
            path=Path(path),
            size=st.st_size,
            extension=Path(path).suffix.lower(),
            created=datetime.fromtimestamp(created),
            modified=datetime.fromtimestamp(st.st_mtime),
            accessed=datetime.fromtimestamp(st.st_atime),
            attributes=attributes,
            mode=st.st_mode & 0o7777,
        )

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class ResolvedDate:
    """Capture date used for placement and naming, with its provenance.

    For filesystem-corrected dates ``created <= modified`` always holds.
    """
    created: datetime
    modified: datetime
    provenance: Provenance
    corrected: bool = False
    raw: Optional[str] = None

    @property
    def year_month(self) -> str:
        return self.created.strftime("%Y-%m")


@dataclass
class FileOutcome:
    """Tracks one file's walk through the pipeline states."""
    media: MediaFile
    state: FileState = FileState.DISCOVERED
    history: List[FileState] = field(default_factory=lambda: [FileState.DISCOVERED])
    fingerprint: Optional[str] = None
    resolved: Optional[ResolvedDate] = None
    destination: Optional[Path] = None
    error: Optional[Exception] = None

    def advance(self, state: FileState) -> None:
        """Move to a new state; states are never re-entered."""
        if self.state in TERMINAL_STATES:
            raise ValueError(f"{self.media.path} already finished as {self.state.value}")
        if state in self.history:
            raise ValueError(f"{self.media.path} cannot re-enter {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: Exception) -> None:
        self.error = error
        self.advance(FileState.FAILED)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES
