"""
Run statistics and end-of-run summary for backup operations.
"""

import threading
from pathlib import Path
from typing import Dict, List, Tuple

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from .errors import BackupError
from .models import MediaFile

SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(num_bytes: int) -> str:
    """Format a byte count in human units (1024 steps)."""
    size = float(num_bytes)
    for unit in SIZE_UNITS[:-1]:
        if abs(size) < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {SIZE_UNITS[-1]}"


class BackupRecord:
    """Counters, placements, and errors accumulated over one run.

    Every mutation takes the record's lock, so workers may report directly.
    """

    def __init__(self, preview: bool = False):
        self.preview = preview
        self.cancelled = False
        self._lock = threading.Lock()
        self._stats = {
            'processed': 0,
            'copied': 0,
            'duplicates': 0,
            'skipped_small': 0,
            'timestamp_fixes': 0,
            'errors': 0,
            'attribute_warnings': 0,
            'total_bytes': 0,
            'saved_bytes': 0,
        }
        self._errors: List[Tuple[str, str]] = []
        self._attribute_warnings: List[Tuple[str, str]] = []
        self._placements: List[Tuple[Path, Path]] = []

    def _bump(self, key: str, amount: int = 1) -> None:
        self._stats[key] += amount

    def record_copied(self, media: MediaFile, dest: Path) -> None:
        """Record a file copied (or, in preview, that would be copied) to ``dest``."""
        with self._lock:
            self._bump('processed')
            self._bump('copied')
            self._bump('total_bytes', media.size)
            self._placements.append((media.path, dest))

    def record_duplicate(self, media: MediaFile) -> None:
        """Record content already owned by another file; its size counts as saved."""
        with self._lock:
            self._bump('processed')
            self._bump('duplicates')
            self._bump('saved_bytes', media.size)

    def record_skipped_small(self, media: MediaFile) -> None:
        with self._lock:
            self._bump('processed')
            self._bump('skipped_small')

    def record_timestamp_fix(self, media: MediaFile) -> None:
        with self._lock:
            self._bump('timestamp_fixes')

    def record_error(self, media: MediaFile, error: Exception) -> None:
        """Record a per-file failure with the file identity and cause."""
        reason = error.reason if isinstance(error, BackupError) else str(error)
        with self._lock:
            self._bump('processed')
            self._bump('errors')
            self._errors.append((str(media.path), reason))

    def record_attribute_warning(self, media: MediaFile, error: Exception) -> None:
        """Record a copy that stands without its original timestamps or attributes."""
        reason = error.reason if isinstance(error, BackupError) else str(error)
        with self._lock:
            self._bump('attribute_warnings')
            self._attribute_warnings.append((str(media.path), reason))

    def mark_cancelled(self) -> None:
        with self._lock:
            self.cancelled = True

    def get_stats(self) -> Dict[str, int]:
        """Get a copy of current statistics."""
        with self._lock:
            return self._stats.copy()

    @property
    def errors(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._errors)

    @property
    def attribute_warnings(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._attribute_warnings)

    @property
    def placements(self) -> List[Tuple[Path, Path]]:
        with self._lock:
            return list(self._placements)

    def has_errors(self) -> bool:
        return self.get_stats()['errors'] > 0

    # Individual stat getters for reporting
    def get_processed(self) -> int:
        return self.get_stats()['processed']

    def get_copied(self) -> int:
        return self.get_stats()['copied']

    def get_duplicates(self) -> int:
        return self.get_stats()['duplicates']

    def get_skipped_small(self) -> int:
        return self.get_stats()['skipped_small']

    def get_timestamp_fixes(self) -> int:
        return self.get_stats()['timestamp_fixes']

    def get_errors(self) -> int:
        return self.get_stats()['errors']

    def get_attribute_warnings(self) -> int:
        return self.get_stats()['attribute_warnings']

    def get_total_bytes(self) -> int:
        return self.get_stats()['total_bytes']

    def get_saved_bytes(self) -> int:
        return self.get_stats()['saved_bytes']

    def render(self) -> RenderableType:
        """Build the end-of-run report: summary table, then any failed or degraded files."""
        stats = self.get_stats()
        title = "Backup Summary"
        if self.preview:
            title += " (preview)"
        if self.cancelled:
            title += " (cancelled)"

        table = Table(title=title)
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green", justify="right")

        table.add_row("Processed", str(stats['processed']))
        table.add_row("Would Back Up" if self.preview else "Backed Up", str(stats['copied']))
        table.add_row("Duplicates Skipped", str(stats['duplicates']))
        table.add_row("Too Small Skipped", str(stats['skipped_small']))
        table.add_row("Timestamps Fixed", str(stats['timestamp_fixes']))
        table.add_row("Attribute Warnings", str(stats['attribute_warnings']))
        table.add_row("Errors", str(stats['errors']))
        table.add_row("Total Size", format_size(stats['total_bytes']))
        table.add_row("Space Saved", format_size(stats['saved_bytes']))

        sections: List[RenderableType] = [table]
        listings = (
            (self.errors, "failed", "red"),
            (self.attribute_warnings, "copied without original attributes", "yellow"),
        )
        for entries, heading, style in listings:
            if not entries:
                continue
            lines = Text(f"\n{len(entries)} file(s) {heading}:\n", style=style)
            for path, reason in entries:
                lines.append(f"  {path}: {reason}\n")
            sections.append(lines)

        if len(sections) == 1:
            return table
        return Group(*sections)
