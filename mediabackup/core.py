"""
Core backup pipeline: size filter, fingerprint, dedup, date resolution, copy.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.logging import RichHandler

from .constants import (DEFAULT_METADATA_TIMEOUT, DEFAULT_MIN_FILE_SIZE_KB, DEFAULT_WORKERS,
                        get_console, get_logger)
from .dedup import DedupIndex
from .errors import AttributePreservationFailure, BackupError, DestinationUnavailable
from .file_operations import FileOperations
from .hashing import Fingerprinter
from .metadata import MetadataProvider, MetadataResolver
from .models import FileOutcome, FileState, MediaFile
from .organizer import plan_destination
from .progress import ProgressEvent
from .scanner import scan_media
from .stats import BackupRecord


def configure_logging(console: Optional[Console] = None, verbose: bool = False) -> None:
    """Route program logs to the rich console; per-file trace only when verbose."""
    console = console or get_console()
    console_handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = get_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(console_handler)
    logger.setLevel(logging.DEBUG)


class BackupPipeline:
    """Drives each discovered file through the backup states on a worker pool.

    Fingerprinting and date resolution run in parallel; dedup decisions are
    taken on the calling thread in traversal order so the first file of a
    set of identical files always wins; copies run in parallel again.
    """

    def __init__(self, source: Path, dest: Optional[Path], preview: bool = False,
                 min_file_size_kb: int = DEFAULT_MIN_FILE_SIZE_KB,
                 workers: int = DEFAULT_WORKERS,
                 provider: Optional[MetadataProvider] = None,
                 metadata_timeout: float = DEFAULT_METADATA_TIMEOUT,
                 timezone: Optional[str] = None,
                 seed_from_destination: bool = True,
                 on_progress: Optional[Callable[[ProgressEvent], None]] = None):
        if dest is None and not preview:
            raise ValueError("A destination is required unless running in preview mode")

        self.source = source
        self.dest = dest
        self.preview = preview
        self.min_size_bytes = min_file_size_kb * 1024
        self.workers = max(1, workers)
        self.seed_from_destination = seed_from_destination
        self.on_progress = on_progress
        self.logger = get_logger()

        self.record = BackupRecord(preview=preview)
        self.fingerprinter = Fingerprinter()
        self.index = DedupIndex()
        self.resolver = MetadataResolver(provider=provider, timeout=metadata_timeout,
                                         timezone=timezone, max_workers=self.workers)
        self.file_ops = FileOperations(dest_root=dest, preview=preview)
        self.outcomes: List[FileOutcome] = []
        self._owners: Dict[str, FileOutcome] = {}
        self._twins: Dict[str, List[FileOutcome]] = {}

        self._cancel = threading.Event()
        self._progress_lock = threading.Lock()
        self._finished = 0
        self._total = 0

    def cancel(self) -> None:
        """Stop handing out new files; in-flight copies finish or clean up."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def find_source_files(self) -> List[MediaFile]:
        """Discover media under the source, skipping a destination nested inside it."""
        exclude = None
        if self.dest is not None:
            source = self.source.resolve()
            dest = self.dest.resolve()
            if source in dest.parents:
                exclude = dest
        return list(scan_media(self.source, exclude=exclude))

    def run(self, files: Optional[List[MediaFile]] = None) -> BackupRecord:
        """Process files (discovered from the source when not given) and return the record.

        DestinationUnavailable and unexpected exceptions propagate; the
        record stays readable for a partial summary.
        """
        self.logger.info(f"Starting backup: {self.source} -> {self.dest}")
        self.logger.info(f"Mode: {'PREVIEW' if self.preview else 'LIVE'}")

        try:
            if files is None:
                files = self.find_source_files()

            if self.dest is not None:
                if self.seed_from_destination:
                    self.index.seed_from_destination(self.dest, self.fingerprinter)
                self.file_ops.ensure_directory(self.dest)

            self.outcomes = [FileOutcome(media) for media in files]
            self._total = len(self.outcomes)
            self.logger.info(f"Processing {self._total} candidate files")

            pool = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="backup")
            try:
                self._run_stages(pool)
            except KeyboardInterrupt:
                self.logger.warning("Interrupted: finishing in-flight files")
                self.cancel()
            finally:
                pool.shutdown(wait=True, cancel_futures=True)
        finally:
            if self.cancelled:
                self.record.mark_cancelled()
            self.resolver.close()

        return self.record

    def _run_stages(self, pool: ThreadPoolExecutor) -> None:
        prepared = [pool.submit(self._prepare, outcome) for outcome in self.outcomes]

        transfers: List[Future] = []
        for outcome, future in zip(self.outcomes, prepared):
            if self.cancelled:
                break
            future.result()
            if outcome.state is FileState.HASHED:
                if self._claim(outcome):
                    transfers.append(pool.submit(self._transfer, outcome))

        while transfers:
            for future in transfers:
                future.result()
            transfers = [pool.submit(self._transfer, outcome)
                         for outcome in self._settle_twins()]

    def _prepare(self, outcome: FileOutcome) -> None:
        """Size check and fingerprint; plan the destination for unseen content."""
        if self.cancelled:
            return

        media = outcome.media
        try:
            outcome.advance(FileState.SIZE_CHECKED)
            if media.size < self.min_size_bytes:
                outcome.advance(FileState.SKIPPED_SMALL)
                self.record.record_skipped_small(media)
                self.logger.debug(f"Too small ({media.size} bytes): {media.path}")
                self._report(outcome)
                return

            outcome.fingerprint = self.fingerprinter.fingerprint(media.path)
            outcome.advance(FileState.HASHED)

            # Content already owned by an earlier run needs no date lookup
            if outcome.fingerprint in self.index:
                return

            self._plan(outcome)
        except (BackupError, OSError) as e:
            self._fail(outcome, e)

    def _plan(self, outcome: FileOutcome) -> None:
        outcome.resolved = self.resolver.resolve(outcome.media)
        outcome.destination = plan_destination(outcome.media, outcome.resolved,
                                               outcome.fingerprint)

    def _claim(self, outcome: FileOutcome) -> bool:
        """Dedup decision; True when the file owns its content and must be copied.

        A file whose content belongs to an earlier file of this run waits
        until that file's copy has settled.
        """
        fingerprint = outcome.fingerprint
        if outcome.destination is None:
            existing = self.index.get(fingerprint)
            inserted = False
        else:
            result = self.index.lookup_or_insert(fingerprint, outcome.destination.as_posix())
            existing, inserted = result.name, result.inserted

        if not inserted:
            if fingerprint in self._owners:
                self._twins.setdefault(fingerprint, []).append(outcome)
            else:
                self._record_duplicate(outcome, existing)
            return False

        self._owners[fingerprint] = outcome
        outcome.advance(FileState.DATE_RESOLVED)
        if outcome.resolved.corrected:
            self.record.record_timestamp_fix(outcome.media)
        outcome.advance(FileState.CLASSIFIED)
        return True

    def _settle_twins(self) -> List[FileOutcome]:
        """Resolve files waiting on an owner whose copy has finished.

        Twins of a recorded owner are duplicates. When the owner failed, its
        index entry is dropped and the next twin in traversal order takes over
        the content; the twins are returned for copying.
        """
        promoted: List[FileOutcome] = []
        for fingerprint in list(self._twins):
            owner = self._owners[fingerprint]
            waiting = self._twins[fingerprint]

            if owner.state in (FileState.RECORDED, FileState.PREVIEW_RECORDED):
                del self._twins[fingerprint]
                for twin in waiting:
                    self._record_duplicate(twin, owner.destination)
                continue

            if owner.state is not FileState.FAILED or self.cancelled:
                continue

            self.index.discard(fingerprint)
            del self._owners[fingerprint]
            successor = waiting.pop(0)
            if not waiting:
                del self._twins[fingerprint]
            self.logger.debug(f"Copy of {owner.media.path} failed; "
                              f"backing up {successor.media.path} instead")

            if successor.destination is None:
                self._plan(successor)
            if self._claim(successor):
                promoted.append(successor)
        return promoted

    def _record_duplicate(self, outcome: FileOutcome, existing) -> None:
        outcome.advance(FileState.DUPLICATE_RECORDED)
        self.record.record_duplicate(outcome.media)
        self.logger.debug(f"Duplicate of {existing}: {outcome.media.path}")
        self._report(outcome)

    def _transfer(self, outcome: FileOutcome) -> None:
        if self.cancelled:
            return

        media = outcome.media
        try:
            dest = self.file_ops.copy_file(media, outcome.destination)
            outcome.destination = dest

            if self.preview:
                outcome.advance(FileState.PREVIEW_RECORDED)
            else:
                outcome.advance(FileState.COPIED)
                try:
                    self.file_ops.apply_attributes(media, dest, outcome.resolved)
                    outcome.advance(FileState.ATTRIBUTES_APPLIED)
                except AttributePreservationFailure as e:
                    self.logger.warning(f"Copied without original attributes: {e}")
                    self.record.record_attribute_warning(media, e)
                outcome.advance(FileState.RECORDED)

            self.record.record_copied(media, dest)
            self._report(outcome)
        except DestinationUnavailable:
            self.cancel()
            raise
        except (BackupError, OSError) as e:
            self._fail(outcome, e)

    def _fail(self, outcome: FileOutcome, error: Exception) -> None:
        outcome.fail(error)
        self.record.record_error(outcome.media, error)
        reason = error.reason if isinstance(error, BackupError) else str(error)
        self.logger.error(f"Error processing {outcome.media.path}: {reason}")
        self._report(outcome)

    def _report(self, outcome: FileOutcome) -> None:
        with self._progress_lock:
            self._finished += 1
            event = ProgressEvent(index=self._finished, total=self._total,
                                  filename=outcome.media.name)
        if self.on_progress is not None:
            self.on_progress(event)
