"""Resolution engine: print sizes and quality from pixel dimensions.

Pure functions, no I/O. Every value is derived from the artwork's pixel
width and height using a fixed pixels-per-centimetre density.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Tuple

PX_PER_CM = 35.43
PX_PER_INCH = PX_PER_CM * 2.54
MIN_PRINT_DPI = 150

# Nominal sizes (cm) per ratio class, ordered Small -> X-Large
PRINT_SIZE_CATALOG: Dict[str, List[Tuple[str, float, float]]] = {
    "square": [
        ("Small", 20, 20),
        ("Medium", 30, 30),
        ("Large", 50, 50),
        ("X-Large", 70, 70),
    ],
    "portrait_2_3": [
        ("Small", 20, 30),
        ("Medium", 30, 45),
        ("Large", 40, 60),
        ("X-Large", 60, 90),
    ],
    "portrait_3_4": [
        ("Small", 21, 28),
        ("Medium", 30, 40),
        ("Large", 45, 60),
        ("X-Large", 60, 80),
    ],
    "portrait_4_5": [
        ("Small", 20, 25),
        ("Medium", 32, 40),
        ("Large", 48, 60),
        ("X-Large", 64, 80),
    ],
    "landscape_3_2": [
        ("Small", 30, 20),
        ("Medium", 45, 30),
        ("Large", 60, 40),
        ("X-Large", 90, 60),
    ],
    "landscape_4_3": [
        ("Small", 28, 21),
        ("Medium", 40, 30),
        ("Large", 60, 45),
        ("X-Large", 80, 60),
    ],
    "landscape_16_9": [
        ("Small", 32, 18),
        ("Medium", 48, 27),
        ("Large", 80, 45),
        ("X-Large", 112, 63),
    ],
    "panoramic_wide": [
        ("Small", 40, 15),
        ("Medium", 60, 22),
        ("Large", 90, 33),
        ("X-Large", 120, 44),
    ],
    "panoramic_tall": [
        ("Small", 15, 40),
        ("Medium", 22, 60),
        ("Large", 33, 90),
        ("X-Large", 44, 120),
    ],
}

RATIO_CLASSES = tuple(PRINT_SIZE_CATALOG.keys())

# (tier, upper area bound cm², price, compare-at price)
PRICE_TIERS = [
    ("small", 600, "29.99", "39.99"),
    ("medium", 1800, "49.99", "64.99"),
    ("large", 4000, "79.99", "99.99"),
    ("extra_large", None, "119.99", "149.99"),
]


@dataclass
class MaxPrint:
    """Largest print at native resolution."""

    width_cm: float
    height_cm: float
    width_inches: float
    height_inches: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Variant:
    """Sellable size for an artwork."""

    label: str
    width_cm: float
    height_cm: float
    width_inches: float
    height_inches: float
    effective_dpi: float
    quality_grade: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PriceTier:
    """Price bucket keyed on maximum print area."""

    tier: str
    price: str
    compare_price: str


@dataclass
class ArtworkAnalysis:
    """Full geometry analysis of one artwork."""

    width_px: int
    height_px: int
    aspect_ratio: float
    ratio_class: str
    max_print: MaxPrint
    variants: List[Variant] = field(default_factory=list)

    @property
    def summary(self) -> dict:
        largest = self.variants[-1] if self.variants else None
        return {
            "total_variants": len(self.variants),
            "best_quality": self.variants[0].quality_grade if self.variants else "n/a",
            "largest_print": (
                f"{largest.width_cm} × {largest.height_cm} cm" if largest else "n/a"
            ),
        }

    def to_dict(self) -> dict:
        return {
            "dimensions": {"width_px": self.width_px, "height_px": self.height_px},
            "aspect_ratio": self.aspect_ratio,
            "ratio_class": self.ratio_class,
            "max_print": self.max_print.to_dict(),
            "variants": [v.to_dict() for v in self.variants],
            "summary": self.summary,
        }


def classify_ratio(width_px: float, height_px: float) -> str:
    """Classify an aspect ratio into one of the nine ratio classes.

    Args:
        width_px: Pixel width (positive)
        height_px: Pixel height (positive)

    Returns:
        Ratio class name

    Examples:
        >>> classify_ratio(4000, 6000)
        'portrait_2_3'
        >>> classify_ratio(9000, 3000)
        'panoramic_wide'
    """
    ratio = width_px / height_px

    if 0.95 <= ratio <= 1.05:
        return "square"
    if 1.05 < ratio <= 1.4:
        return "landscape_4_3"
    if 1.4 < ratio <= 1.65:
        return "landscape_3_2"
    if 1.65 < ratio <= 2.0:
        return "landscape_16_9"
    if ratio > 2.0:
        return "panoramic_wide"
    if 0.7 <= ratio < 0.95:
        return "portrait_4_5"
    if 0.6 <= ratio < 0.7:
        return "portrait_3_4"
    if 0.5 <= ratio < 0.6:
        return "portrait_2_3"
    if ratio < 0.5:
        return "panoramic_tall"

    return "landscape_4_3"


def max_print_size(width_px: float, height_px: float) -> MaxPrint:
    """Calculate the largest print size at native resolution."""
    return MaxPrint(
        width_cm=round(width_px / PX_PER_CM, 2),
        height_cm=round(height_px / PX_PER_CM, 2),
        width_inches=round(width_px / PX_PER_INCH, 2),
        height_inches=round(height_px / PX_PER_INCH, 2),
    )


def effective_dpi(
    width_px: float, height_px: float, print_width_cm: float, print_height_cm: float
) -> float:
    """Calculate the effective DPI of a print (limiting axis wins)."""
    dpi_w = width_px / (print_width_cm / 2.54)
    dpi_h = height_px / (print_height_cm / 2.54)
    return round(min(dpi_w, dpi_h), 2)


def grade_quality(dpi: float) -> str:
    """Grade print quality from DPI."""
    if dpi >= 300:
        return "excellent"
    if dpi >= 200:
        return "good"
    if dpi >= 150:
        return "acceptable"
    return "low"


def _make_variant(label: str, width_px: float, height_px: float, w_cm: float, h_cm: float) -> Variant:
    dpi = effective_dpi(width_px, height_px, w_cm, h_cm)
    return Variant(
        label=label,
        width_cm=w_cm,
        height_cm=h_cm,
        width_inches=round(w_cm / 2.54, 2),
        height_inches=round(h_cm / 2.54, 2),
        effective_dpi=dpi,
        quality_grade=grade_quality(dpi),
    )


def compute_variants(width_px: int, height_px: int) -> List[Variant]:
    """Compute the sellable variants for an artwork.

    Each catalog size for the artwork's ratio class is scaled to the exact
    ratio: landscape and square hold the catalog width, portrait holds the
    catalog height. Only variants reaching MIN_PRINT_DPI are kept. When none
    qualify, a single "Custom" variant is returned regardless of DPI.

    Args:
        width_px: Pixel width
        height_px: Pixel height

    Returns:
        Variants ordered Small -> X-Large, or a lone Custom variant

    Examples:
        >>> [v.label for v in compute_variants(4000, 6000)]
        ['Small', 'Medium', 'Large', 'X-Large']
    """
    ratio_class = classify_ratio(width_px, height_px)
    ratio = round(width_px / height_px, 4)
    catalog = PRINT_SIZE_CATALOG.get(ratio_class, PRINT_SIZE_CATALOG["landscape_4_3"])

    variants = []
    for label, cat_w, cat_h in catalog:
        if ratio < 1:
            print_h = cat_h
            print_w = round(cat_h * ratio, 2)
        else:
            print_w = cat_w
            print_h = round(cat_w / ratio, 2)

        variant = _make_variant(label, width_px, height_px, print_w, print_h)
        if variant.effective_dpi >= MIN_PRINT_DPI:
            variants.append(variant)

    if not variants:
        custom_w = min(max_print_size(width_px, height_px).width_cm, 30)
        custom_h = round(custom_w / ratio, 2)
        variants.append(_make_variant("Custom", width_px, height_px, custom_w, custom_h))

    return variants


def analyze_artwork(width_px: int, height_px: int) -> ArtworkAnalysis:
    """Run the full geometry analysis for an artwork."""
    return ArtworkAnalysis(
        width_px=width_px,
        height_px=height_px,
        aspect_ratio=round(width_px / height_px, 4),
        ratio_class=classify_ratio(width_px, height_px),
        max_print=max_print_size(width_px, height_px),
        variants=compute_variants(width_px, height_px),
    )


def price_tier(max_width_cm: float, max_height_cm: float) -> PriceTier:
    """Map maximum print area to a price tier.

    Examples:
        >>> price_tier(112.93, 169.37).tier
        'extra_large'
    """
    area = (max_width_cm or 0) * (max_height_cm or 0)
    for tier, limit, price, compare in PRICE_TIERS:
        if limit is None or area <= limit:
            return PriceTier(tier=tier, price=price, compare_price=compare)
    # Unreachable: last tier has no limit
    raise ValueError(f"No price tier for area {area}")
