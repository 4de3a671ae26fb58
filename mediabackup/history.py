"""
Backup run history: per-run log files and the global audit log.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from .stats import BackupRecord, format_size


class RunHistory:
    """Places a per-run log file under the program root and audits each run."""

    def __init__(self, root_dir: Path, dest_path: Optional[Path], preview: bool = False):
        self.root_dir = root_dir
        self.dest_path = dest_path
        self.preview = preview
        self.history_dir = self.root_dir / "history"
        self.audit_log = self.root_dir / "imports.log"
        self.run_folder: Optional[Path] = None
        self.run_log: Optional[Path] = None
        self._handler: Optional[logging.Handler] = None

        if not preview:
            self._setup_run_folder()

    def _setup_run_folder(self) -> None:
        """Create a dated run folder, adding a counter if one is already in use."""
        timestamp = datetime.now().strftime("%Y-%m-%d")
        dest_name = self._sanitize_dest_name(self.dest_path) if self.dest_path else "preview"
        base_name = f"{timestamp}+{dest_name}"

        folder = self.history_dir / base_name
        counter = 1
        while folder.exists() and any(folder.iterdir()):
            folder = self.history_dir / f"{base_name}-{counter:02d}"
            counter += 1

        folder.mkdir(parents=True, exist_ok=True)
        self.run_folder = folder
        self.run_log = folder / "backup.log"

    @staticmethod
    def _sanitize_dest_name(dest_path: Path) -> str:
        """Convert destination path to safe folder name."""
        name = dest_path.name
        sanitized = re.sub(r'[^\w\-_]', '-', name)
        sanitized = re.sub(r'-+', '-', sanitized)
        return sanitized.strip('-') or "root"

    def attach(self, logger: logging.Logger) -> None:
        """Send every record of ``logger`` to this run's log file."""
        if self.run_log is None:
            return

        self._handler = logging.FileHandler(self.run_log, encoding="utf-8")
        self._handler.setLevel(logging.DEBUG)
        self._handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(name)s] %(levelname)s: %(message)s'
        ))
        logger.addHandler(self._handler)
        logger.setLevel(logging.DEBUG)

    def detach(self, logger: logging.Logger) -> None:
        if self._handler is not None:
            logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def log_summary(self, source: Path, record: BackupRecord, success: bool) -> None:
        """Append a one-line run summary to the audit log."""
        if self.preview:
            return

        self.root_dir.mkdir(parents=True, exist_ok=True)

        stats = record.get_stats()
        status = "SUCCESS" if success and not record.cancelled else "PARTIAL"
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        summary = (
            f"{timestamp} | {status} | "
            f"Source: {source} | Dest: {self.dest_path} | "
            f"Copied: {stats['copied']} ({format_size(stats['total_bytes'])}) | "
            f"Duplicates: {stats['duplicates']} ({format_size(stats['saved_bytes'])} saved) | "
            f"Small: {stats['skipped_small']} | Errors: {stats['errors']} | "
            f"History: {self.run_folder.name if self.run_folder else '-'}\n"
        )

        with open(self.audit_log, 'a', encoding='utf-8') as f:
            f.write(summary)
