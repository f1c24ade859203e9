"""Storefront catalog queries and response shaping."""

import json
import logging
import random
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Query, Session, selectinload

from printbrain.models.asset import Asset
from printbrain.services.descriptions import DETAIL_WIDTHS, generate_description, image_set, image_url
from printbrain.services.print_spec import generate_print_spec
from printbrain.services.resolution_engine import price_tier
from printbrain.services.vocabulary import CONTINENTS, COUNTRIES

logger = logging.getLogger(__name__)

VISIBLE_STATUSES = ("ready", "analyzed")
SORTS = ("newest", "oldest", "title_asc", "title_desc", "random")

PRICE_TIER_LABELS = [
    {"tier": "small", "label": "Small (≤24×17cm)", "price": "$29.99", "framedPrice": "$39.99"},
    {"tier": "medium", "label": "Medium (≤42×30cm)", "price": "$49.99", "framedPrice": "$64.99"},
    {"tier": "large", "label": "Large (≤63×45cm)", "price": "$79.99", "framedPrice": "$99.99"},
    {"tier": "extra_large", "label": "Extra Large (>63×45cm)", "price": "$119.99", "framedPrice": "$149.99"},
]


class PriceMapError(Exception):
    """Price map document missing or unreadable."""
    pass


def load_price_map(path: str) -> Dict[str, Any]:
    """Read the skeleton price map JSON document."""
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PriceMapError(f"Price map not configured: {e}")


def max_print_label(width_cm: Optional[float], height_cm: Optional[float]) -> str:
    return f"{width_cm or 0} × {height_cm or 0} cm"


def tag_pattern(value: str) -> str:
    """LIKE pattern matching one element of the serialized ``ai_tags`` list."""
    return f'%"{value}"%'


def visible_assets(db: Session) -> Query:
    """Assets eligible for the storefront."""
    return db.query(Asset).filter(
        Asset.ingestion_status.in_(VISIBLE_STATUSES),
        Asset.drive_file_id.isnot(None),
        Asset.style.isnot(None),
    )


def catalog_item(asset: Asset) -> Dict[str, Any]:
    tier = price_tier(asset.max_print_width_cm, asset.max_print_height_cm)
    return {
        "id": asset.id,
        "title": asset.title,
        "artist": asset.artist,
        "style": asset.style,
        "mood": asset.mood,
        "era": asset.era,
        "subject": asset.subject,
        "orientation": asset.ratio_class,
        "quality": asset.quality_tier,
        "image": image_url(asset.drive_file_id, 600),
        "imageSrcset": image_set(asset.drive_file_id),
        "driveFileId": asset.drive_file_id,
        "priceTier": tier.tier,
        "price": tier.price,
        "comparePrice": tier.compare_price,
        "maxPrint": max_print_label(asset.max_print_width_cm, asset.max_print_height_cm),
    }


def browse_catalog(
    db: Session,
    page: int = 1,
    per_page: int = 24,
    filters: Optional[Dict[str, Optional[str]]] = None,
    sort: str = "newest",
    q: Optional[str] = None,
) -> Tuple[List[Dict[str, Any]], int]:
    """
    Paginated catalog browse.

    Args:
        db: Database session
        page: 1-based page number
        per_page: Page size (1-100)
        filters: Optional exact-match and tag filters
        sort: One of SORTS
        q: Case-insensitive substring across text fields

    Returns:
        Tuple of (items, total)
    """
    filters = filters or {}
    query = visible_assets(db)

    for field in ("artist", "style", "mood", "era", "subject"):
        if filters.get(field):
            query = query.filter(getattr(Asset, field) == filters[field])
    if filters.get("orientation"):
        query = query.filter(Asset.ratio_class == filters["orientation"])
    tags_text = cast(Asset.ai_tags, String)
    for field in ("country", "continent", "tag"):
        if filters.get(field):
            query = query.filter(tags_text.ilike(tag_pattern(filters[field])))
    if q:
        pattern = f"%{q}%"
        query = query.filter(
            or_(
                Asset.title.ilike(pattern),
                Asset.style.ilike(pattern),
                Asset.mood.ilike(pattern),
                Asset.artist.ilike(pattern),
                Asset.era.ilike(pattern),
                Asset.subject.ilike(pattern),
            )
        )

    total = query.count()

    if sort == "oldest":
        query = query.order_by(Asset.created_at.asc())
    elif sort == "title_asc":
        query = query.order_by(Asset.title.asc())
    elif sort == "title_desc":
        query = query.order_by(Asset.title.desc())
    else:
        query = query.order_by(Asset.created_at.desc())

    assets = query.offset((page - 1) * per_page).limit(per_page).all()
    items = [catalog_item(a) for a in assets]
    if sort == "random":
        random.shuffle(items)
    return items, total


def get_asset(db: Session, asset_id: str) -> Optional[Asset]:
    return db.query(Asset).options(selectinload(Asset.variants)).filter(Asset.id == asset_id).first()


def asset_detail(asset: Asset, price_map: Dict[str, Any]) -> Dict[str, Any]:
    """Full storefront view of one asset."""
    tier = price_tier(asset.max_print_width_cm, asset.max_print_height_cm)
    variants = []
    for v in asset.variants:
        variants.append(
            {
                "id": v.id,
                "label": v.label,
                "size": f"{v.width_cm} × {v.height_cm} cm",
                "widthCm": v.width_cm,
                "heightCm": v.height_cm,
                "dpi": v.effective_dpi,
                "quality": v.quality_grade,
                "priceTier": price_tier(v.width_cm, v.height_cm).tier,
                "printSpec": generate_print_spec(asset, v),
            }
        )
    return {
        "id": asset.id,
        "title": asset.title,
        "artist": asset.artist,
        "description": asset.description or generate_description(asset),
        "style": asset.style,
        "mood": asset.mood,
        "palette": asset.palette,
        "subject": asset.subject,
        "era": asset.era,
        "orientation": asset.ratio_class,
        "quality": asset.quality_tier,
        "maxPrint": max_print_label(asset.max_print_width_cm, asset.max_print_height_cm),
        "widthPx": asset.width_px,
        "heightPx": asset.height_px,
        "driveFileId": asset.drive_file_id,
        "images": image_set(asset.drive_file_id, DETAIL_WIDTHS),
        "priceTier": tier.tier,
        "basePrice": tier.price,
        "comparePrice": tier.compare_price,
        "variants": variants,
        "priceMap": price_map,
        "tags": asset.ai_tags or [],
    }


def _counted(values) -> List[Dict[str, Any]]:
    return [{"value": value, "count": count} for value, count in Counter(values).most_common()]


def list_artists(db: Session, limit: int = 200) -> Tuple[List[Dict[str, Any]], int]:
    """Artists with visible asset counts, most prolific first."""
    rows = (
        db.query(Asset.artist, func.count(Asset.id))
        .filter(Asset.ingestion_status.in_(VISIBLE_STATUSES), Asset.artist.isnot(None))
        .group_by(Asset.artist)
        .order_by(func.count(Asset.id).desc(), Asset.artist)
        .all()
    )
    artists = [{"artist": name, "name": name, "count": count} for name, count in rows]
    return artists[:limit], len(artists)


def geography_counts(tag_lists) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
    """Count known continents and countries appearing in tag lists."""
    continents = {c.lower(): c for c in CONTINENTS}
    countries = {c.lower(): c for c in COUNTRIES}
    found_continents = []
    found_countries = []
    for tags in tag_lists:
        for tag in set(t.lower() for t in tags or [] if isinstance(t, str)):
            if tag in continents:
                found_continents.append(continents[tag])
            elif tag in countries:
                found_countries.append(countries[tag])
    return _counted(found_continents), _counted(found_countries)


def list_filters(db: Session) -> Dict[str, Any]:
    """Distinct filter values with counts."""
    base = db.query(Asset).filter(Asset.ingestion_status.in_(VISIBLE_STATUSES))

    def distinct(column) -> List[Dict[str, Any]]:
        rows = (
            base.filter(column.isnot(None))
            .with_entities(column, func.count(Asset.id))
            .group_by(column)
            .order_by(func.count(Asset.id).desc())
            .all()
        )
        return [{"value": value, "count": count} for value, count in rows]

    tag_lists = [row[0] for row in base.filter(Asset.ai_tags.isnot(None)).with_entities(Asset.ai_tags)]
    continents, countries = geography_counts(tag_lists)
    return {
        "styles": distinct(Asset.style),
        "moods": distinct(Asset.mood),
        "eras": distinct(Asset.era),
        "subjects": distinct(Asset.subject),
        "orientations": distinct(Asset.ratio_class),
        "continents": continents,
        "countries": countries,
        "priceTiers": PRICE_TIER_LABELS,
    }


def find_by_product_id(db: Session, product_id: str) -> Optional[Asset]:
    return db.query(Asset).filter(Asset.shopify_product_id == str(product_id)).first()


def match_item(match: Dict[str, Any]) -> Dict[str, Any]:
    """Storefront view of a similarity match."""
    tier = price_tier(match.get("max_print_width_cm"), match.get("max_print_height_cm"))
    return {
        "id": match["asset_id"],
        "productId": match.get("shopify_product_id"),
        "title": match.get("title"),
        "artist": match.get("artist"),
        "image": image_url(match["drive_file_id"], 400),
        "style": match.get("style"),
        "priceTier": tier.tier,
        "price": tier.price,
        "similarity": match.get("similarity"),
    }


def product_item(match: Dict[str, Any]) -> Dict[str, Any]:
    """Product-keyed view used by the legacy similar endpoints."""
    return {
        "productId": match.get("shopify_product_id"),
        "title": match.get("title"),
        "artist": match.get("artist"),
        "image": image_url(match["drive_file_id"], 400),
        "similarity": match.get("similarity"),
    }
