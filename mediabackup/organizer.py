"""
Extension classification and destination naming.
"""

from datetime import datetime
from pathlib import Path

from .constants import (AUDIO_EXTENSIONS, FINGERPRINT_PREFIX_LENGTH, IMAGE_EXTENSIONS,
                        VIDEO_EXTENSIONS)
from .models import Category, MediaFile, ResolvedDate

CATEGORY_BY_EXTENSION = {
    **{ext: Category.IMAGES for ext in IMAGE_EXTENSIONS},
    **{ext: Category.VIDEOS for ext in VIDEO_EXTENSIONS},
    **{ext: Category.AUDIO for ext in AUDIO_EXTENSIONS},
}

DATE_STAMP_FORMAT = "%Y%m%d_%H%M%S"


def normalize_extension(ext: str) -> str:
    """Lowercase an extension and make sure it has a leading dot."""
    ext = ext.lower()
    if ext and not ext.startswith("."):
        ext = f".{ext}"
    return ext


def classify(ext: str) -> Category:
    """Map a file extension to its destination category."""
    return CATEGORY_BY_EXTENSION.get(normalize_extension(ext), Category.OTHER)


def build_filename(date: datetime, fingerprint: str, ext: str) -> str:
    """Build ``YYYYMMDD_HHMMSS_<digest prefix><ext>``."""
    prefix = fingerprint[:FINGERPRINT_PREFIX_LENGTH].lower()
    return f"{date.strftime(DATE_STAMP_FORMAT)}_{prefix}{normalize_extension(ext)}"


def destination_relpath(category: Category, date: datetime, filename: str) -> Path:
    return Path(category.value) / date.strftime("%Y-%m") / filename


def plan_destination(media: MediaFile, resolved: ResolvedDate, fingerprint: str) -> Path:
    """Relative destination path for a unique file."""
    filename = build_filename(resolved.created, fingerprint, media.extension)
    return destination_relpath(classify(media.extension), resolved.created, filename)
