"""Operator dashboard queries and asset re-analysis."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from printbrain.models.asset import Asset
from printbrain.models.asset_variant import AssetVariant
from printbrain.services.pipeline_runs import list_runs
from printbrain.services.print_spec import DEFAULT_PROFILES, generate_print_spec
from printbrain.services.resolution_engine import PRICE_TIERS, PRINT_SIZE_CATALOG, analyze_artwork

logger = logging.getLogger(__name__)

TOP_STYLES = 20


class AssetNotAnalyzableError(Exception):
    """Raised when an asset has no pixel dimensions to analyze."""

    pass


def _counts_by(db: Session, column, limit: Optional[int] = None) -> Dict[str, int]:
    count = func.count(Asset.id)
    stmt = select(column, count).where(column.isnot(None)).group_by(column).order_by(count.desc())
    if limit:
        stmt = stmt.limit(limit)
    return {value: total for value, total in db.execute(stmt)}


def stats(db: Session) -> Dict[str, Any]:
    """Pipeline-wide counters for the dashboard."""
    recent = [
        {
            "id": run.id,
            "run_type": run.run_type,
            "status": run.status,
            "processed_items": run.processed_items,
            "error_count": run.error_count,
            "started_at": run.started_at.isoformat() if run.started_at else None,
            "finished_at": run.finished_at.isoformat() if run.finished_at else None,
        }
        for run in list_runs(db, limit=5)
    ]
    return {
        "total_assets": db.scalar(select(func.count(Asset.id))) or 0,
        "total_variants": db.scalar(select(func.count(AssetVariant.id))) or 0,
        "total_artists": db.scalar(select(func.count(func.distinct(Asset.artist)))) or 0,
        "ingestion_status": _counts_by(db, Asset.ingestion_status),
        "shopify_status": _counts_by(db, Asset.shopify_status),
        "ratio_distribution": _counts_by(db, Asset.ratio_class),
        "style_distribution": _counts_by(db, Asset.style, limit=TOP_STYLES),
        "recent_runs": recent,
    }


def list_assets(
    db: Session,
    page: int = 1,
    per_page: int = 50,
    ingestion_status: Optional[str] = None,
    shopify_status: Optional[str] = None,
    artist: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[Asset], int]:
    """Filtered, newest-first asset page with variants loaded."""
    query = db.query(Asset)
    if ingestion_status:
        query = query.filter(Asset.ingestion_status == ingestion_status)
    if shopify_status:
        query = query.filter(Asset.shopify_status == shopify_status)
    if artist:
        query = query.filter(Asset.artist == artist)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Asset.filename.ilike(pattern), Asset.title.ilike(pattern)))

    total = query.count()
    assets = (
        query.options(selectinload(Asset.variants))
        .order_by(Asset.created_at.desc(), Asset.id)
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return assets, total


def get_asset(db: Session, asset_id: str) -> Optional[Asset]:
    return (
        db.query(Asset)
        .options(selectinload(Asset.variants))
        .filter(Asset.id == asset_id)
        .first()
    )


def print_specs(asset: Asset, profile_key: str = "matte_paper") -> List[Dict[str, Any]]:
    """One print spec per stored variant."""
    return [generate_print_spec(asset, variant, profile_key) for variant in asset.variants]


def reanalyze_asset(db: Session, asset: Asset) -> Dict[str, Any]:
    """
    Re-run the resolution engine and replace the stored geometry.

    Raises:
        AssetNotAnalyzableError: If the asset has no positive pixel dimensions
    """
    if not asset.width_px or not asset.height_px or asset.width_px <= 0 or asset.height_px <= 0:
        raise AssetNotAnalyzableError(f"Asset {asset.id} has no pixel dimensions")

    analysis = analyze_artwork(asset.width_px, asset.height_px)

    asset.aspect_ratio = analysis.aspect_ratio
    asset.ratio_class = analysis.ratio_class
    asset.max_print_width_cm = analysis.max_print.width_cm
    asset.max_print_height_cm = analysis.max_print.height_cm
    if asset.ingestion_status in ("pending", "downloaded", "error"):
        asset.ingestion_status = "analyzed"
        asset.ingestion_error = None
    asset.updated_at = datetime.utcnow()

    asset.variants.clear()
    for variant in analysis.variants:
        asset.variants.append(AssetVariant(**variant.to_dict()))

    db.commit()
    logger.info(
        f"Re-analyzed asset {asset.id}: {analysis.ratio_class}, {len(analysis.variants)} variants"
    )
    return analysis.to_dict()


def print_profiles() -> Dict[str, Any]:
    return {key: profile.to_dict() for key, profile in DEFAULT_PROFILES.items()}


def size_catalog() -> Dict[str, Any]:
    """Nominal sizes per ratio class plus the price tier bands."""
    return {
        "ratio_classes": {
            ratio: [{"label": label, "width_cm": w, "height_cm": h} for label, w, h in sizes]
            for ratio, sizes in PRINT_SIZE_CATALOG.items()
        },
        "price_tiers": [
            {"tier": tier, "max_area_cm2": bound, "price": price, "compare_price": compare}
            for tier, bound, price, compare in PRICE_TIERS
        ],
    }
