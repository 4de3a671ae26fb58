"""
Single-pass discovery of media files under a source tree.
"""

import os
from pathlib import Path
from typing import Iterator, Optional

from .constants import VALID_EXTENSIONS, get_logger
from .models import MediaFile

logger = get_logger("mediabackup.scanner")


def scan_media(source: Path, exclude: Optional[Path] = None) -> Iterator[MediaFile]:
    """Yield MediaFile snapshots for recognized media under ``source``.

    One walk covers every extension. Directories and files are visited in
    sorted order so the sequence is stable across runs. Hidden directories,
    symlinks, and the ``exclude`` subtree (a destination nested inside the
    source) are skipped.
    """
    exclude = exclude.resolve() if exclude is not None else None

    for dirpath, dirnames, filenames in os.walk(source):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames
            if not d.startswith(".")
            and not (current / d).is_symlink()
            and (exclude is None or (current / d).resolve() != exclude)
        )

        for filename in sorted(filenames):
            path = current / filename
            if path.suffix.lower() not in VALID_EXTENSIONS or path.is_symlink():
                continue
            try:
                yield MediaFile.from_path(path)
            except OSError as e:
                logger.warning(f"Cannot stat {path}: {e}")
