"""Business logic services."""

from printbrain.services.filename_parser import parse_filename, quality_tier_for
from printbrain.services.resolution_engine import analyze_artwork, classify_ratio

__all__ = ["parse_filename", "quality_tier_for", "analyze_artwork", "classify_ratio"]
