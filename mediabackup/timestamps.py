"""Shared functions for parsing date-time strings and correcting filesystem dates."""

import re
import unicodedata
import zoneinfo
from datetime import datetime
from typing import Optional

from .constants import get_logger
from .errors import DateParseFailure
from .models import MediaFile, Provenance, ResolvedDate


logger = get_logger("mediabackup.timestamps")

# Accepted metadata date-time layouts, in priority order. Covers raw EXIF,
# exiftool output with offsets, ffprobe ISO 8601, and shell-style US/EU forms.
DATE_PATTERNS = (
    "%Y:%m:%d %H:%M:%S%z",
    "%Y:%m:%d %H:%M:%S.%f%z",
    "%Y:%m:%d %H:%M:%S.%f",
    "%Y:%m:%d %H:%M:%S",
    "%Y:%m:%d %H:%M",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y",
)

# Locale-dependent layouts tried once the fixed patterns are exhausted
LOCALE_PATTERNS = ("%c", "%x %X", "%x")

# Camera firmware writes zeroed or placeholder years when the clock is unset
MIN_VALID_YEAR = 1900

_WHITESPACE = re.compile(r"\s+")


def clean_date_string(raw: str) -> str:
    """Strip invisible formatting characters and collapse whitespace.

    Shell metadata providers wrap date parts in bidirectional marks
    (U+200E, U+200F) and may pad with non-breaking spaces.
    """
    visible = "".join(ch for ch in raw if unicodedata.category(ch) != "Cf")
    return _WHITESPACE.sub(" ", visible).strip()


def is_valid_timezone(tz_name: str) -> bool:
    """True when the timezone database knows ``tz_name``."""
    try:
        zoneinfo.ZoneInfo(tz_name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        return False
    return True


def to_local_naive(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Convert an aware datetime to the configured zone and drop tzinfo.

    Naive datetimes are assumed to already be local capture time.
    """
    if dt.tzinfo is None:
        return dt
    tz = zoneinfo.ZoneInfo(tz_name) if tz_name else None
    return dt.astimezone(tz).replace(tzinfo=None)


def _locale_parse(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass

    for pattern in LOCALE_PATTERNS:
        try:
            return datetime.strptime(text, pattern)
        except ValueError:
            continue
    return None


def parse_date_string(raw: str, tz_name: Optional[str] = None) -> datetime:
    """Parse a metadata date string, raising DateParseFailure if nothing fits."""
    text = clean_date_string(raw)
    if not text:
        raise DateParseFailure(raw)

    parsed = None
    for pattern in DATE_PATTERNS:
        try:
            parsed = datetime.strptime(text, pattern)
            break
        except ValueError:
            continue

    if parsed is None:
        parsed = _locale_parse(text)

    if parsed is None or parsed.year < MIN_VALID_YEAR:
        raise DateParseFailure(raw)

    return to_local_naive(parsed, tz_name)


def filesystem_date(media: MediaFile) -> ResolvedDate:
    """Resolve dates from filesystem timestamps.

    A creation time later than the modification time means the file was
    copied or restored and its creation time reset, so the modification
    time stands in for it.
    """
    if media.created > media.modified:
        logger.debug(f"Timestamp fix for {media.path}: created {media.created} "
                     f"> modified {media.modified}")
        return ResolvedDate(created=media.modified, modified=media.modified,
                            provenance=Provenance.FILESYSTEM_CORRECTED, corrected=True)

    return ResolvedDate(created=media.created, modified=media.modified,
                        provenance=Provenance.FILESYSTEM_CORRECTED)
