"""Asset business logic service.

All writes to the asset catalog go through this module so the
``updated_at`` column is maintained on every update.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from printbrain.models.asset import Asset
from printbrain.models.asset_embedding import AssetEmbedding
from printbrain.models.asset_variant import AssetVariant
from printbrain.models.types import new_uuid
from printbrain.services.resolution_engine import analyze_artwork

logger = logging.getLogger(__name__)

CHECK_CHUNK_SIZE = 500
ERROR_MESSAGE_LIMIT = 500
NO_DIMENSIONS_ERROR = "No dimensions in filename"

ENRICHMENT_FIELDS = ("style", "mood", "subject", "era", "palette", "ai_tags")

# Every record carries the same keys so batches can be executed as executemany
ASSET_RECORD_KEYS = (
    "id",
    "drive_file_id",
    "filename",
    "file_path",
    "mime_type",
    "file_size_bytes",
    "md5_checksum",
    "artist",
    "quality_tier",
    "title",
    "width_px",
    "height_px",
    "aspect_ratio",
    "ratio_class",
    "max_print_width_cm",
    "max_print_height_cm",
    "ingestion_status",
    "shopify_status",
    "ingestion_error",
    "created_at",
    "updated_at",
)


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _insert_ignore(db: Session, table):
    """Dialect-specific INSERT ... ON CONFLICT DO NOTHING."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Unsupported dialect for upsert: {dialect}")


def find_existing_drive_ids(
    db: Session, drive_file_ids: Sequence[str], chunk_size: int = CHECK_CHUNK_SIZE
) -> Set[str]:
    """Return the subset of ``drive_file_ids`` already stored.

    Args:
        db: Database session
        drive_file_ids: Candidate Drive file ids
        chunk_size: Ids per IN query

    Returns:
        Set of ids present in the assets table
    """
    existing: Set[str] = set()
    ids = list(dict.fromkeys(drive_file_ids))
    for chunk in _chunks(ids, chunk_size):
        rows = db.execute(select(Asset.drive_file_id).where(Asset.drive_file_id.in_(chunk)))
        existing.update(row[0] for row in rows)
    return existing


def build_asset_record(file_record: Dict[str, Any]) -> Dict[str, Any]:
    """Derive an asset row (and its variants) from a scanned file record.

    Records with positive parsed dimensions get the full geometry
    analysis; otherwise geometry stays null and the row is flagged with
    "No dimensions in filename".

    Args:
        file_record: Scanner output (id, name, mime_type, size, md5, path,
            artist, quality_tier, title, width, height)

    Returns:
        Dict with asset column values plus a ``variants`` list

    Examples:
        >>> rec = build_asset_record({"id": "X", "name": "a_4000x6000.jpg",
        ...     "title": "a", "width": 4000, "height": 6000})
        >>> rec["ratio_class"], rec["ingestion_status"]
        ('portrait_2_3', 'analyzed')
    """
    now = datetime.utcnow()
    record: Dict[str, Any] = {key: None for key in ASSET_RECORD_KEYS}
    record.update(
        {
            "id": new_uuid(),
            "drive_file_id": file_record["id"],
            "filename": file_record.get("name") or file_record["id"],
            "file_path": file_record.get("path"),
            "mime_type": file_record.get("mime_type"),
            "file_size_bytes": file_record.get("size") or 0,
            "md5_checksum": file_record.get("md5"),
            "artist": file_record.get("artist") or None,
            "quality_tier": file_record.get("quality_tier") or None,
            "title": file_record.get("title") or None,
            "ingestion_status": "analyzed",
            "shopify_status": "pending",
            "created_at": now,
            "updated_at": now,
        }
    )

    width = int(file_record.get("width") or 0)
    height = int(file_record.get("height") or 0)
    if width <= 0 or height <= 0:
        record["ingestion_error"] = NO_DIMENSIONS_ERROR
        record["variants"] = []
        return record

    analysis = analyze_artwork(width, height)
    record.update(
        {
            "width_px": width,
            "height_px": height,
            "aspect_ratio": analysis.aspect_ratio,
            "ratio_class": analysis.ratio_class,
            "max_print_width_cm": analysis.max_print.width_cm,
            "max_print_height_cm": analysis.max_print.height_cm,
        }
    )
    record["variants"] = [v.to_dict() for v in analysis.variants]
    return record


def insert_asset_records(db: Session, records: List[Dict[str, Any]]) -> int:
    """Insert asset rows, ignoring ``drive_file_id`` conflicts.

    Variants are inserted only for rows that were actually created.

    Returns:
        Number of asset rows inserted
    """
    if not records:
        return 0

    rows = [{key: rec.get(key) for key in ASSET_RECORD_KEYS} for rec in records]
    stmt = _insert_ignore(db, Asset.__table__).on_conflict_do_nothing(
        index_elements=["drive_file_id"]
    )
    db.execute(stmt, rows)

    generated_ids = [row["id"] for row in rows]
    inserted_ids = set(
        db.execute(select(Asset.id).where(Asset.id.in_(generated_ids))).scalars()
    )

    variant_rows = [
        {"asset_id": rec["id"], "created_at": datetime.utcnow(), **variant}
        for rec in records
        if rec["id"] in inserted_ids
        for variant in rec.get("variants", [])
    ]
    if variant_rows:
        db.execute(AssetVariant.__table__.insert(), variant_rows)

    db.commit()
    return len(inserted_ids)


def record_scan_error(db: Session, file_record: Dict[str, Any], message: str) -> None:
    """Record a file the scanner could not process (insert-or-ignore)."""
    record = build_asset_record({**file_record, "width": 0, "height": 0})
    record["ingestion_status"] = "error"
    record["ingestion_error"] = (message or "")[:ERROR_MESSAGE_LIMIT]
    insert_asset_records(db, [record])


def count_assets(db: Session) -> int:
    """Total number of asset rows."""
    return db.scalar(select(func.count(Asset.id))) or 0


def update_asset(db: Session, asset_id: str, values: Dict[str, Any]) -> bool:
    """Update one asset row and bump ``updated_at``.

    Returns:
        True if a row was updated
    """
    values = {**values, "updated_at": datetime.utcnow()}
    result = db.execute(update(Asset).where(Asset.id == asset_id).values(**values))
    db.commit()
    return result.rowcount > 0


def fetch_untagged_ids(
    db: Session,
    after_id: Optional[str] = None,
    limit: int = 5000,
    force: bool = False,
) -> List[str]:
    """Page through ids needing enrichment, ordered by id (keyset)."""
    stmt = select(Asset.id).order_by(Asset.id).limit(limit)
    if not force:
        stmt = stmt.where(Asset.style.is_(None))
    if after_id is not None:
        stmt = stmt.where(Asset.id > after_id)
    return list(db.execute(stmt).scalars())


def fetch_assets_by_ids(db: Session, asset_ids: Sequence[str]) -> List[Asset]:
    """Load assets preserving the order of ``asset_ids``."""
    if not asset_ids:
        return []
    rows = db.execute(select(Asset).where(Asset.id.in_(list(asset_ids)))).scalars().all()
    by_id = {row.id: row for row in rows}
    return [by_id[i] for i in asset_ids if i in by_id]


def apply_enrichment(db: Session, asset_id: str, tags: Dict[str, Any]) -> bool:
    """Write classification fields for one asset."""
    values = {field: tags.get(field) for field in ENRICHMENT_FIELDS if field in tags}
    if not values:
        return False
    return update_asset(db, asset_id, values)


def fetch_pending_sync(db: Session, limit: int = 50) -> List[Asset]:
    """Assets waiting for downstream product creation, ordered by id."""
    stmt = (
        select(Asset)
        .where(Asset.shopify_product_id.is_(None), Asset.shopify_status != "error")
        .order_by(Asset.id)
        .limit(limit)
    )
    return list(db.execute(stmt).scalars())


def count_pending_sync(db: Session) -> int:
    """Number of assets still waiting for product creation."""
    stmt = select(func.count(Asset.id)).where(
        Asset.shopify_product_id.is_(None), Asset.shopify_status != "error"
    )
    return db.scalar(stmt) or 0


def mark_synced(db: Session, asset_id: str, product_id: str, product_gid: Optional[str] = None) -> bool:
    """Link an asset to its created product in a single write."""
    return update_asset(
        db,
        asset_id,
        {
            "shopify_product_id": str(product_id),
            "shopify_product_gid": product_gid or f"gid://shopify/Product/{product_id}",
            "shopify_status": "synced",
            "shopify_synced_at": datetime.utcnow(),
            "ingestion_status": "ready",
        },
    )


def mark_sync_error(db: Session, asset_id: str, message: str) -> bool:
    """Flag a product-creation failure on the asset."""
    return update_asset(
        db,
        asset_id,
        {"shopify_status": "error", "ingestion_error": (message or "")[:ERROR_MESSAGE_LIMIT]},
    )


def fetch_assets_without_embedding(db: Session, limit: int = 1000, force: bool = False) -> List[Asset]:
    """Enriched assets that still need an embedding."""
    stmt = select(Asset).where(Asset.style.isnot(None)).order_by(Asset.id).limit(limit)
    if not force:
        stmt = stmt.outerjoin(AssetEmbedding, AssetEmbedding.asset_id == Asset.id).where(
            AssetEmbedding.id.is_(None)
        )
    return list(db.execute(stmt).scalars())


def upsert_embedding(db: Session, asset_id: str, vector: Sequence[float], text: str) -> None:
    """Insert or replace the embedding for an asset."""
    existing = db.execute(
        select(AssetEmbedding).where(AssetEmbedding.asset_id == asset_id)
    ).scalar_one_or_none()
    if existing:
        existing.embedding = list(vector)
        existing.embedding_text = text
    else:
        db.add(AssetEmbedding(asset_id=asset_id, embedding=list(vector), embedding_text=text))
    db.commit()
