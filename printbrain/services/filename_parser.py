"""Filename parsing and image filtering for Drive files."""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath

DIMENSIONS_PATTERN = re.compile(r"^(.+?)_(\d+)x(\d+)$")
SEPARATORS_PATTERN = re.compile(r"[-_]+")

IMAGE_MIME_TYPES = {
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/tiff",
    "image/bmp",
    "image/gif",
}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".tiff", ".tif", ".bmp", ".gif"}


@dataclass
class ParsedFilename:
    """Title and pixel dimensions embedded in a filename."""

    title: str
    width: int
    height: int

    @property
    def has_dimensions(self) -> bool:
        return self.width > 0 and self.height > 0


def _clean_title(raw: str) -> str:
    return SEPARATORS_PATTERN.sub(" ", raw).strip()


def parse_filename(filename: str) -> ParsedFilename:
    """Parse ``TITLE_WxH.ext`` filenames.

    Examples:
        >>> parse_filename("Midnight Sun 1930_10057x12926.jpg")
        ParsedFilename(title='Midnight Sun 1930', width=10057, height=12926)
        >>> parse_filename("abstract-work.png")
        ParsedFilename(title='abstract work', width=0, height=0)
    """
    stem = PurePosixPath(filename).stem
    match = DIMENSIONS_PATTERN.match(stem)
    if match:
        return ParsedFilename(
            title=_clean_title(match.group(1)),
            width=int(match.group(2)),
            height=int(match.group(3)),
        )
    return ParsedFilename(title=_clean_title(stem), width=0, height=0)


def is_image_file(name: str, mime_type: str = "") -> bool:
    """Check declared mime type, then extension."""
    if mime_type in IMAGE_MIME_TYPES or (mime_type or "").startswith("image/"):
        return True
    return PurePosixPath(name or "").suffix.lower() in IMAGE_EXTENSIONS


def should_skip(name: str) -> bool:
    """Skip macOS resource forks and CSV sidecars."""
    return name.startswith("._") or name.lower().endswith(".csv")


def quality_tier_for(folder_name: str) -> str:
    """Map a quality bucket folder name to a tier."""
    return "high" if "above" in (folder_name or "").lower() else "standard"
