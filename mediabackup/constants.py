"""
File extension constants, defaults, and shared console/logger helpers.
"""

import logging
import subprocess
from typing import Optional

from rich.console import Console

PROGRAM = "mediabackup"

# File extension constants
JPG_EXTENSIONS = (".jpg", ".jpeg", ".jpe")
RAW_EXTENSIONS = (
    ".3fr", ".arw", ".cr2", ".cr3", ".crw", ".dcr", ".dng", ".erf", ".iiq",
    ".k25", ".kdc", ".mef", ".mos", ".mrw", ".nef", ".nrw", ".orf", ".pef",
    ".raf", ".raw", ".rw2", ".rwl", ".sr2", ".srf", ".srw", ".x3f",
)
IMAGE_EXTENSIONS = JPG_EXTENSIONS + RAW_EXTENSIONS + (
    ".png", ".gif", ".bmp", ".tif", ".tiff", ".heic", ".heif", ".webp",
    ".avif", ".jxl",
)
VIDEO_EXTENSIONS = (
    ".3g2", ".3gp", ".asf", ".avi", ".divx", ".f4v", ".flv", ".m2ts",
    ".m2v", ".m4v", ".mkv", ".mod", ".mov", ".mp4", ".mpeg", ".mpg", ".mts",
    ".mxf", ".ogv", ".rm", ".rmvb", ".tod", ".ts", ".vob", ".webm", ".wmv",
)
AUDIO_EXTENSIONS = (
    ".aac", ".aif", ".aiff", ".alac", ".amr", ".ape", ".flac", ".m4a",
    ".m4b", ".mid", ".midi", ".mp3", ".oga", ".ogg", ".opus", ".wav",
    ".wma", ".wv",
)
VALID_EXTENSIONS = frozenset(IMAGE_EXTENSIONS + VIDEO_EXTENSIONS + AUDIO_EXTENSIONS)

# Run defaults
DEFAULT_MIN_FILE_SIZE_KB = 10
DEFAULT_WORKERS = 4
DEFAULT_METADATA_TIMEOUT = 10.0

# Hex characters of the content digest kept in destination filenames
FINGERPRINT_PREFIX_LENGTH = 12
HASH_CHUNK_SIZE = 1024 * 1024

_console: Optional[Console] = None


def get_console() -> Console:
    """Return the process-wide rich console."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_logger(name: str = PROGRAM) -> logging.Logger:
    """Return a logger in the program's namespace."""
    return logging.getLogger(name)


def check_tool_availability(cmd: str, version_flag: str = "-h") -> bool:
    """Check whether an external command-line tool can be executed."""
    try:
        subprocess.run([cmd, version_flag], capture_output=True, timeout=10)
        return True
    except (OSError, subprocess.SubprocessError):
        return False
