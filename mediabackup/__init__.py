"""
mediabackup - Back up media into Category/YYYY-MM folders without duplicates.

Fingerprints every file, copies each distinct content once, names copies by
capture date and digest, and carries original timestamps and attributes over
to the backup.
"""

__version__ = "1.0.0"


# Public API
from .cli import main
from .config import Config
from .core import BackupPipeline
from .dedup import DedupIndex
from .file_operations import FileOperations
from .hashing import Fingerprinter
from .metadata import MetadataProvider, MetadataResolver
from .stats import BackupRecord

__all__ = [ "main", "Config", "BackupPipeline", "DedupIndex", "FileOperations", "Fingerprinter",
            "MetadataProvider", "MetadataResolver", "BackupRecord" ]
