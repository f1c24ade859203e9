"""Storefront text helpers: fallback descriptions and image URLs."""

from typing import Any, Dict, Iterable

CLOSING_LINE = "Printed on premium museum-quality archival paper with vivid, lightfast inks."
UNKNOWN_ARTIST = "Unknown Artist"
IMAGE_BASE_URL = "https://lh3.googleusercontent.com/d"

CATALOG_WIDTHS = (400, 600, 800)
DETAIL_WIDTHS = (400, 800, 1200, 1600, 2000)


def article(word: str) -> str:
    """Return "An" before a vowel-initial word, else "A"."""
    return "An" if word[:1].lower() in "aeiou" else "A"


def generate_description(asset: Any) -> str:
    """Build a deterministic description from an asset's metadata.

    The opening sentence depends on which of style and subject are known.
    Era, mood and palette are added when present, followed by a fixed
    closing line.

    Examples:
        >>> from types import SimpleNamespace
        >>> generate_description(SimpleNamespace(artist="Claude Monet", style="Impressionism",
        ...     subject="Landscape", era=None, mood=None, palette=None))
        'An impressionism landscape by Claude Monet. Printed on premium museum-quality archival paper with vivid, lightfast inks.'
    """
    artist = getattr(asset, "artist", None) or UNKNOWN_ARTIST
    style = getattr(asset, "style", None)
    subject = getattr(asset, "subject", None)
    era = getattr(asset, "era", None)
    mood = getattr(asset, "mood", None)
    palette = getattr(asset, "palette", None)

    if style and subject:
        opening = f"{article(style)} {style.lower()} {subject.lower()} by {artist}."
    elif style:
        opening = f"{article(style)} {style.lower()} work by {artist}."
    elif subject:
        opening = f"{article(subject)} {subject.lower()} by {artist}."
    else:
        opening = f"A work by {artist}."

    sentences = [opening]
    if era and era != "Unknown":
        sentences.append(f"Created during the {era.lower()} period.")
    if mood and palette:
        sentences.append(f"This piece evokes a {mood.lower()} atmosphere with {palette.lower()}.")
    elif mood:
        sentences.append(f"This piece evokes a {mood.lower()} atmosphere.")
    elif palette:
        sentences.append(f"Featuring {palette.lower()}.")
    sentences.append(CLOSING_LINE)
    return " ".join(sentences)


def image_url(drive_file_id: str, width: int = 800) -> str:
    """Drive thumbnail URL sized to ``width`` on the longest edge."""
    return f"{IMAGE_BASE_URL}/{drive_file_id}=s{width}"


def image_set(drive_file_id: str, widths: Iterable[int] = CATALOG_WIDTHS) -> Dict[str, str]:
    """Map ``s<width>`` keys to thumbnail URLs."""
    return {f"s{w}": image_url(drive_file_id, w) for w in widths}
