"""
Content fingerprinting for duplicate detection.
"""

import errno
import hashlib
import os
from pathlib import Path

from .constants import HASH_CHUNK_SIZE
from .errors import HashFailure, PathTooLong

WINDOWS_MAX_PATH = 260
WINDOWS_LONG_PATH_PREFIX = "\\\\?\\"
DEFAULT_PATH_MAX = 4096


def max_path_length(directory: Path) -> int:
    """Longest path the platform accepts for files under ``directory``."""
    if os.name == "nt":
        return WINDOWS_MAX_PATH
    try:
        return os.pathconf(directory, "PC_PATH_MAX")
    except (OSError, ValueError):
        return DEFAULT_PATH_MAX


def check_path_length(path: Path) -> None:
    """Raise PathTooLong if ``path`` exceeds the platform limit."""
    text = str(path)
    if os.name == "nt" and text.startswith(WINDOWS_LONG_PATH_PREFIX):
        return

    parent = path.parent
    while not parent.exists() and parent != parent.parent:
        parent = parent.parent

    limit = max_path_length(parent)
    if len(text) >= limit:
        raise PathTooLong(path, f"path length {len(text)} exceeds platform limit {limit}")


class Fingerprinter:
    """Computes SHA-256 digests over full file content."""

    def __init__(self, chunk_size: int = HASH_CHUNK_SIZE):
        self.chunk_size = chunk_size

    def fingerprint(self, path: Path) -> str:
        """Return the hex digest of the file's bytes."""
        check_path_length(path)

        digest = hashlib.sha256()
        try:
            with open(path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    digest.update(chunk)
        except OSError as e:
            if e.errno == errno.ENAMETOOLONG:
                raise PathTooLong(path, str(e)) from e
            raise HashFailure(path, e.strerror or str(e)) from e

        return digest.hexdigest()
