"""
Embedded capture-date lookup through pluggable metadata providers.
"""

import json
import subprocess
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .constants import (DEFAULT_METADATA_TIMEOUT, VIDEO_EXTENSIONS,
                        check_tool_availability, get_logger)
from .errors import DateParseFailure, MetadataUnavailable
from .models import Category, MediaFile, Provenance, ResolvedDate
from .organizer import classify
from .timestamps import filesystem_date, is_valid_timezone, parse_date_string


logger = get_logger("mediabackup.metadata")


class MetadataField(str, Enum):
    """Metadata entry that holds the capture date for a category."""
    DATE_TAKEN = "date-taken"
    MEDIA_CREATED = "media-created"


FIELD_BY_CATEGORY: Dict[Category, MetadataField] = {
    Category.IMAGES: MetadataField.DATE_TAKEN,
    Category.VIDEOS: MetadataField.MEDIA_CREATED,
}


class MetadataProvider:
    """Returns the raw date string stored in a file's metadata field, or None."""

    name = "provider"

    def read_date(self, path: Path, field: MetadataField) -> Optional[str]:
        raise NotImplementedError


class NullProvider(MetadataProvider):
    """Provider used when no metadata tool is installed."""

    name = "none"

    def read_date(self, path: Path, field: MetadataField) -> Optional[str]:
        return None


class ExifToolProvider(MetadataProvider):
    """Reads date tags with exiftool."""

    name = "exiftool"
    TAGS = {
        MetadataField.DATE_TAKEN: "DateTimeOriginal",
        MetadataField.MEDIA_CREATED: "MediaCreateDate",
    }

    def __init__(self, timeout: float = DEFAULT_METADATA_TIMEOUT):
        self.timeout = timeout

    def read_date(self, path: Path, field: MetadataField) -> Optional[str]:
        try:
            # QuickTimeUTC makes exiftool emit video dates with their UTC offset
            result = subprocess.run([
                "exiftool",
                "-s3",
                "-api", "QuickTimeUTC",
                f"-{self.TAGS[field]}",
                str(path)],
                capture_output=True, text=True, timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"exiftool timed out on {path}")
            return None

        if result.returncode != 0:
            logger.debug(f"exiftool failed for {path}: {result.stderr.strip()}")
            return None

        lines = result.stdout.strip().splitlines()
        return lines[0] if lines else None


class FFprobeProvider(MetadataProvider):
    """Reads video creation tags from the container with ffprobe."""

    name = "ffprobe"
    DATE_KEYS = ("com.apple.quicktime.creationdate", "creation_time")

    def __init__(self, timeout: float = DEFAULT_METADATA_TIMEOUT):
        self.timeout = timeout

    def read_date(self, path: Path, field: MetadataField) -> Optional[str]:
        if field is not MetadataField.MEDIA_CREATED:
            return None
        if path.suffix.lower() not in VIDEO_EXTENSIONS:
            return None

        try:
            result = subprocess.run([
                "ffprobe", "-v", "quiet",
                "-print_format", "json",
                "-show_format",
                str(path)
            ], capture_output=True, text=True, check=True, timeout=self.timeout)
            data = json.loads(result.stdout)
        except subprocess.TimeoutExpired:
            logger.warning(f"ffprobe timed out on {path}")
            return None
        except subprocess.CalledProcessError as e:
            logger.debug(f"ffprobe failed for {path}: {e}")
            return None
        except json.JSONDecodeError as e:
            logger.debug(f"Failed to parse ffprobe JSON output for {path}: {e}")
            return None

        tags = data.get("format", {}).get("tags", {})
        for key in self.DATE_KEYS:
            if tags.get(key):
                return tags[key]
        return None


class ChainedProvider(MetadataProvider):
    """Asks each provider in turn; the first non-empty answer wins."""

    name = "chain"

    def __init__(self, providers: Iterable[MetadataProvider]):
        self.providers: List[MetadataProvider] = list(providers)

    def read_date(self, path: Path, field: MetadataField) -> Optional[str]:
        for provider in self.providers:
            raw = provider.read_date(path, field)
            if raw:
                return raw
        return None


def default_provider(timeout: float = DEFAULT_METADATA_TIMEOUT) -> MetadataProvider:
    """Build a provider chain from the metadata tools found on PATH."""
    providers: List[MetadataProvider] = []
    if check_tool_availability("exiftool", "-ver"):
        providers.append(ExifToolProvider(timeout=timeout))
    if check_tool_availability("ffprobe", "-version"):
        providers.append(FFprobeProvider(timeout=timeout))

    if not providers:
        logger.warning("Neither exiftool nor ffprobe found: using filesystem dates only")
        return NullProvider()
    return ChainedProvider(providers)


class MetadataResolver:
    """Resolves a file's capture date from metadata, else from corrected filesystem dates.

    Provider calls run on a private executor so a stalled lookup is abandoned
    after ``timeout`` seconds and treated as missing metadata.
    """

    def __init__(self, provider: Optional[MetadataProvider] = None,
                 timeout: float = DEFAULT_METADATA_TIMEOUT,
                 timezone: Optional[str] = None, max_workers: int = 4):
        if timezone and not is_valid_timezone(timezone):
            raise ValueError(f"Unknown timezone: {timezone}")

        self.provider = provider if provider is not None else default_provider(timeout)
        self.timeout = timeout
        self.timezone = timezone
        self._executor = ThreadPoolExecutor(max_workers=max_workers,
                                            thread_name_prefix="metadata")

    def close(self) -> None:
        # Do not wait: a hung provider call must not block shutdown
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "MetadataResolver":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _read_raw(self, media: MediaFile, field: MetadataField) -> str:
        future = self._executor.submit(self.provider.read_date, media.path, field)
        try:
            raw = future.result(timeout=self.timeout)
        except FuturesTimeout:
            future.cancel()
            logger.warning(f"Metadata lookup timed out after {self.timeout}s: {media.path}")
            raise MetadataUnavailable(media.path, "metadata lookup timed out")
        except Exception as e:
            logger.warning(f"Metadata provider error for {media.path}: {e}")
            raise MetadataUnavailable(media.path, f"provider error: {e}") from e

        if not raw or not raw.strip():
            raise MetadataUnavailable(media.path, f"no {field.value} entry")
        return raw

    def capture_date(self, media: MediaFile) -> Optional[Tuple[datetime, str]]:
        """Return (capture date, raw string) from embedded metadata, or None."""
        field = FIELD_BY_CATEGORY.get(classify(media.extension))
        if field is None:
            return None

        try:
            raw = self._read_raw(media, field)
            return parse_date_string(raw, self.timezone), raw
        except MetadataUnavailable as e:
            logger.debug(str(e))
        except DateParseFailure as e:
            logger.debug(f"Date parse failure for {media.path}: {e.reason}")
        return None

    def resolve(self, media: MediaFile) -> ResolvedDate:
        """Resolve creation/modification dates used for placement and naming."""
        capture = self.capture_date(media)
        if capture is not None:
            taken, raw = capture
            return ResolvedDate(created=taken, modified=taken,
                                provenance=Provenance.METADATA, raw=raw)
        return filesystem_date(media)
