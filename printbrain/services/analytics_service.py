"""Storefront analytics: event ingest, summaries and trending."""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from printbrain.models.analytics_event import EVENT_TYPES, AnalyticsEvent
from printbrain.models.asset import Asset
from printbrain.services.descriptions import image_url

logger = logging.getLogger(__name__)

TRENDING_SQL = text(
    "SELECT product_id, trending_score, views, clicks, adds_to_cart "
    "FROM trending_products ORDER BY trending_score DESC LIMIT :limit"
)
REFRESH_TRENDING_SQL = text("SELECT refresh_trending()")
MAX_PER_ARTIST = 2

# Engagement weights for the summary ranking
SUMMARY_WEIGHTS = {"add_to_cart": 5, "click": 2, "view": 1}


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def normalize_events(payload: Any, client_host: Optional[str]) -> List[Dict[str, Any]]:
    """
    Validate raw event payloads.

    Args:
        payload: A single event object or a list of them
        client_host: Peer address used when ``session_id`` is absent

    Returns:
        Row values for every event with a known ``event_type``
    """
    events = payload if isinstance(payload, list) else [payload]
    rows = []
    for event in events:
        if not isinstance(event, dict) or event.get("event_type") not in EVENT_TYPES:
            continue
        metadata = event.get("metadata")
        rows.append(
            {
                "event_type": event["event_type"],
                "product_id": _optional_str(event.get("product_id")),
                "asset_id": _optional_str(event.get("asset_id")),
                "collection_id": _optional_str(event.get("collection_id")),
                "search_query": event.get("search_query") or None,
                "session_id": event.get("session_id") or client_host,
                "metadata_json": metadata if isinstance(metadata, dict) else {},
            }
        )
    return rows


def insert_events(db: Session, rows: List[Dict[str, Any]]) -> int:
    db.add_all([AnalyticsEvent(**row) for row in rows])
    db.commit()
    return len(rows)


def log_search(db: Session, query: str, session_id: Optional[str]) -> None:
    """Append a search event. Failures are logged, never raised."""
    try:
        insert_events(db, [{"event_type": "search", "search_query": query, "session_id": session_id}])
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Search event not recorded: {e}")


def summarize(db: Session, days: int = 7) -> Dict[str, Any]:
    """Event counts by type and top products by engagement over ``days``."""
    since = datetime.utcnow() - timedelta(days=days)
    events = (
        db.query(AnalyticsEvent.event_type, AnalyticsEvent.product_id)
        .filter(AnalyticsEvent.created_at >= since)
        .all()
    )

    by_type = Counter(event_type for event_type, _ in events)
    products: Dict[str, Dict[str, int]] = {}
    for event_type, product_id in events:
        if not product_id:
            continue
        stats = products.setdefault(product_id, {"views": 0, "clicks": 0, "atc": 0})
        if event_type == "view":
            stats["views"] += 1
        elif event_type == "click":
            stats["clicks"] += 1
        elif event_type == "add_to_cart":
            stats["atc"] += 1

    top = [
        {
            "product_id": product_id,
            **stats,
            "score": stats["atc"] * SUMMARY_WEIGHTS["add_to_cart"]
            + stats["clicks"] * SUMMARY_WEIGHTS["click"]
            + stats["views"] * SUMMARY_WEIGHTS["view"],
        }
        for product_id, stats in products.items()
    ]
    top.sort(key=lambda p: p["score"], reverse=True)

    return {
        "period": f"{days} days",
        "total_events": len(events),
        "by_type": dict(by_type),
        "top_products": top[:20],
    }


def _trending_from_view(db: Session, limit: int) -> List[Dict[str, Any]]:
    try:
        rows = db.execute(TRENDING_SQL, {"limit": limit}).mappings().all()
    except SQLAlchemyError as e:
        # The view only exists on PostgreSQL after migrations
        db.rollback()
        logger.debug(f"trending_products unavailable: {e}")
        return []
    if not rows:
        return []

    product_ids = [str(r["product_id"]) for r in rows]
    assets = {
        a.shopify_product_id: a
        for a in db.query(Asset).filter(
            Asset.shopify_product_id.in_(product_ids), Asset.shopify_status == "synced"
        )
    }
    trending = []
    for row in rows:
        asset = assets.get(str(row["product_id"]))
        if asset is None:
            continue
        trending.append(
            {
                "productId": asset.shopify_product_id,
                "title": asset.title,
                "artist": asset.artist,
                "image": image_url(asset.drive_file_id, 400),
                "style": asset.style,
                "trendingScore": row["trending_score"],
            }
        )
    return trending


def _newest_diverse(db: Session, limit: int) -> List[Dict[str, Any]]:
    assets = (
        db.query(Asset)
        .filter(Asset.shopify_status == "synced", Asset.shopify_product_id.isnot(None))
        .order_by(Asset.created_at.desc())
        .limit(limit * 2)
        .all()
    )
    per_artist: Counter = Counter()
    trending = []
    for asset in assets:
        if per_artist[asset.artist] >= MAX_PER_ARTIST:
            continue
        per_artist[asset.artist] += 1
        trending.append(
            {
                "productId": asset.shopify_product_id,
                "title": asset.title,
                "artist": asset.artist,
                "image": image_url(asset.drive_file_id, 400),
                "style": asset.style,
            }
        )
        if len(trending) >= limit:
            break
    return trending


def trending_products(db: Session, limit: int = 12) -> List[Dict[str, Any]]:
    """Trending from the materialized view, else newest synced with artist diversity."""
    return _trending_from_view(db, limit) or _newest_diverse(db, limit)


def refresh_trending(db: Session) -> None:
    db.execute(REFRESH_TRENDING_SQL)
    db.commit()
