"""Print spec generator for fulfillment.

Provider-agnostic: a spec describes cut size, production size with bleed,
material and a source sufficiency check.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict

from printbrain.services.resolution_engine import PX_PER_CM


@dataclass(frozen=True)
class PrintProfile:
    """Material profile used for production files."""

    name: str
    material_type: str
    bleed_mm: float
    min_dpi: int
    max_long_edge_cm: float
    file_format: str = "PNG"
    color_profile: str = "sRGB"

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_PROFILES: Dict[str, PrintProfile] = {
    "matte_paper": PrintProfile("Premium Matte Paper", "paper_matte", 3, 150, 120),
    "glossy_paper": PrintProfile("Glossy Photo Paper", "paper_glossy", 3, 200, 100),
    "canvas_wrap": PrintProfile("Canvas Wrap", "canvas", 40, 150, 150),
    "metal_print": PrintProfile("Metal Print", "metal", 0, 200, 90),
}


def generate_print_spec(asset: Any, variant: Any, profile_key: str = "matte_paper") -> Dict[str, Any]:
    """Generate a print job spec for an asset variant.

    Args:
        asset: Asset row (needs id, drive_file_id, filename, width_px, height_px)
        variant: AssetVariant row or Variant dataclass
        profile_key: Key into DEFAULT_PROFILES; unknown keys use matte paper

    Returns:
        Dict with cut, production, material, quality and source sections
    """
    profile = DEFAULT_PROFILES.get(profile_key, DEFAULT_PROFILES["matte_paper"])

    bleed_cm = profile.bleed_mm / 10
    total_width_cm = variant.width_cm + bleed_cm * 2
    total_height_cm = variant.height_cm + bleed_cm * 2

    required_width_px = math.ceil(total_width_cm * PX_PER_CM)
    required_height_px = math.ceil(total_height_cm * PX_PER_CM)

    can_produce = (asset.width_px or 0) >= required_width_px and (
        asset.height_px or 0
    ) >= required_height_px

    return {
        "asset_id": asset.id,
        "order_variant": f"{variant.width_cm}×{variant.height_cm}cm",
        "cut": {
            "width_cm": variant.width_cm,
            "height_cm": variant.height_cm,
            "width_inches": variant.width_inches,
            "height_inches": variant.height_inches,
        },
        "production": {
            "width_cm": round(total_width_cm, 2),
            "height_cm": round(total_height_cm, 2),
            "width_px": required_width_px,
            "height_px": required_height_px,
        },
        "material": {
            "name": profile.name,
            "type": profile.material_type,
            "bleed_mm": profile.bleed_mm,
            "file_format": profile.file_format,
            "color_profile": profile.color_profile,
        },
        "quality": {
            "effective_dpi": variant.effective_dpi,
            "quality_grade": variant.quality_grade,
            "source_sufficient": can_produce,
        },
        "source": {
            "drive_file_id": asset.drive_file_id,
            "filename": asset.filename,
            "width_px": asset.width_px,
            "height_px": asset.height_px,
        },
    }
