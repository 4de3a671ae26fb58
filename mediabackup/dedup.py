"""
Run-scoped index of content fingerprints already claimed by a destination name.
"""

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .constants import VALID_EXTENSIONS, get_logger
from .errors import BackupError
from .hashing import Fingerprinter


@dataclass(frozen=True)
class DedupResult:
    """Outcome of a check-and-insert.

    ``name`` is the caller's candidate when inserted, else the name that
    already owns the fingerprint.
    """
    inserted: bool
    name: str


class DedupIndex:
    """Thread-safe fingerprint -> destination name map with first-wins insertion."""

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("mediabackup.dedup")

    def lookup_or_insert(self, fingerprint: str, candidate_name: str) -> DedupResult:
        with self._lock:
            existing = self._entries.get(fingerprint)
            if existing is not None:
                return DedupResult(inserted=False, name=existing)
            self._entries[fingerprint] = candidate_name
            return DedupResult(inserted=True, name=candidate_name)

    def get(self, fingerprint: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(fingerprint)

    def discard(self, fingerprint: str) -> None:
        """Release a fingerprint whose owner never reached the destination."""
        with self._lock:
            self._entries.pop(fingerprint, None)

    def __contains__(self, fingerprint: str) -> bool:
        return self.get(fingerprint) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def seed_from_destination(self, dest_root: Path, fingerprinter: Fingerprinter) -> int:
        """Index media already under ``dest_root`` so re-runs skip backed-up content.

        Returns the number of fingerprints added.
        """
        if not dest_root.is_dir():
            return 0

        added = 0
        for dirpath, dirnames, filenames in os.walk(dest_root):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if filename.startswith(".") or path.suffix.lower() not in VALID_EXTENSIONS:
                    continue
                try:
                    fingerprint = fingerprinter.fingerprint(path)
                except BackupError as e:
                    self.logger.warning(f"Could not index existing file {e}")
                    continue
                rel = path.relative_to(dest_root).as_posix()
                if self.lookup_or_insert(fingerprint, rel).inserted:
                    added += 1

        self.logger.info(f"Indexed {added} existing files under {dest_root}")
        return added
