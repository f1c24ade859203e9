"""Tests for the print spec generator."""

from types import SimpleNamespace

import pytest

from printbrain.services.print_spec import DEFAULT_PROFILES, generate_print_spec
from printbrain.services.resolution_engine import compute_variants


@pytest.fixture
def asset():
    return SimpleNamespace(
        id="asset-1",
        drive_file_id="drive-1",
        filename="Midnight_4000x6000.jpg",
        width_px=4000,
        height_px=6000,
    )


def test_matte_paper_spec_adds_bleed(asset):
    small = compute_variants(4000, 6000)[0]
    spec = generate_print_spec(asset, small)

    assert spec["asset_id"] == "asset-1"
    assert spec["cut"]["width_cm"] == small.width_cm
    # 3mm bleed on each side
    assert spec["production"]["width_cm"] == pytest.approx(small.width_cm + 0.6)
    assert spec["production"]["height_cm"] == pytest.approx(small.height_cm + 0.6)
    assert spec["material"]["type"] == "paper_matte"
    assert spec["quality"]["source_sufficient"] is True
    assert spec["source"]["drive_file_id"] == "drive-1"


def test_canvas_wrap_adds_four_cm_per_side(asset):
    largest = compute_variants(4000, 6000)[-1]
    spec = generate_print_spec(asset, largest, "canvas_wrap")
    assert spec["material"]["bleed_mm"] == 40
    assert spec["production"]["width_cm"] == pytest.approx(largest.width_cm + 8)
    assert spec["quality"]["source_sufficient"] is True


def test_source_too_small_for_production(asset):
    largest = compute_variants(4000, 6000)[-1]
    tiny = SimpleNamespace(**{**vars(asset), "width_px": 1000, "height_px": 1500})
    assert generate_print_spec(tiny, largest)["quality"]["source_sufficient"] is False


def test_unknown_profile_falls_back_to_matte(asset):
    small = compute_variants(4000, 6000)[0]
    spec = generate_print_spec(asset, small, "velvet")
    assert spec["material"]["name"] == DEFAULT_PROFILES["matte_paper"].name
