"""Similarity search strategies.

``VectorSearch`` queries the ``match_assets`` SQL function over pgvector
embeddings. ``TagSearch`` scores candidates by shared enrichment tags.
``SimilarityService`` tries the primary strategy and falls back to the
secondary one when the primary is unavailable or returns nothing. Both
strategies return the same match shape. Queries run in a worker thread
so the event loop hosting the drip worker and watcher stays responsive.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, select, text
from sqlalchemy.orm import Session

from printbrain.models.asset import Asset
from printbrain.models.asset_embedding import AssetEmbedding
from printbrain.services.embedding import GeminiEmbedder

logger = logging.getLogger(__name__)

SIMILAR_THRESHOLD = 0.5
SEARCH_THRESHOLD = 0.3

MATCH_SQL = text(
    "SELECT asset_id, shopify_product_id, title, drive_file_id, artist, style, mood, "
    "ratio_class, max_print_width_cm, max_print_height_cm, similarity "
    "FROM match_assets(CAST(:query_embedding AS vector), :match_threshold, :match_count)"
)

# (field, weight)
TAG_WEIGHTS = [("style", 3), ("mood", 2), ("subject", 2), ("palette", 1), ("ratio_class", 1)]
DIVERSITY_BONUS = 1


def to_match(asset: Asset, score: float) -> Dict[str, Any]:
    """Common result shape for every strategy."""
    return {
        "asset_id": asset.id,
        "shopify_product_id": asset.shopify_product_id,
        "title": asset.title,
        "drive_file_id": asset.drive_file_id,
        "artist": asset.artist,
        "style": asset.style,
        "mood": asset.mood,
        "ratio_class": asset.ratio_class,
        "max_print_width_cm": asset.max_print_width_cm,
        "max_print_height_cm": asset.max_print_height_cm,
        "similarity": score,
    }


def tag_score(source: Asset, candidate: Asset) -> int:
    """Score a candidate by the tags it shares with the source."""
    score = 0
    for field, weight in TAG_WEIGHTS:
        value = getattr(source, field)
        if value is not None and getattr(candidate, field) == value:
            score += weight
    if candidate.artist != source.artist:
        score += DIVERSITY_BONUS
    return score


class SearchStrategy(ABC):
    """Find assets similar to an asset or matching a text query."""

    method = "none"

    @abstractmethod
    async def similar_to_asset(self, db: Session, asset: Asset, limit: int) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def search_text(self, db: Session, query: str, limit: int) -> List[Dict[str, Any]]:
        pass


class VectorSearch(SearchStrategy):
    """Nearest neighbours over asset embeddings."""

    method = "vector"

    def __init__(self, embedder: Optional[GeminiEmbedder] = None):
        self.embedder = embedder

    @staticmethod
    def _vector_literal(vector) -> str:
        return "[" + ",".join(str(float(v)) for v in vector) + "]"

    def _match(self, db: Session, vector, threshold: float, count: int) -> List[Dict[str, Any]]:
        rows = db.execute(
            MATCH_SQL,
            {
                "query_embedding": self._vector_literal(vector),
                "match_threshold": threshold,
                "match_count": count,
            },
        ).mappings()
        return [dict(row) for row in rows]

    def _similar(self, db: Session, asset: Asset, limit: int) -> List[Dict[str, Any]]:
        vector = db.execute(
            select(AssetEmbedding.embedding).where(AssetEmbedding.asset_id == asset.id)
        ).scalar_one_or_none()
        if vector is None:
            return []
        matches = self._match(db, vector, SIMILAR_THRESHOLD, limit + 1)
        return [m for m in matches if m["asset_id"] != asset.id][:limit]

    async def similar_to_asset(self, db: Session, asset: Asset, limit: int) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._similar, db, asset, limit)

    async def search_text(self, db: Session, query: str, limit: int) -> List[Dict[str, Any]]:
        if self.embedder is None:
            return []
        vector = await self.embedder.embed_text(query)
        return await asyncio.to_thread(self._match, db, vector, SEARCH_THRESHOLD, limit)


class TagSearch(SearchStrategy):
    """Tag-overlap scoring and substring search, no embeddings needed."""

    method = "tags"

    def __init__(self, synced_only: bool = False):
        self.synced_only = synced_only

    def _candidates(self):
        stmt = select(Asset)
        if self.synced_only:
            stmt = stmt.where(Asset.shopify_status == "synced", Asset.shopify_product_id.isnot(None))
        else:
            stmt = stmt.where(Asset.ingestion_status.in_(["ready", "analyzed"]))
        return stmt

    def _similar(self, db: Session, asset: Asset, limit: int) -> List[Dict[str, Any]]:
        stmt = self._candidates().where(Asset.id != asset.id)
        if asset.style:
            stmt = stmt.where(Asset.style == asset.style)
        candidates = db.execute(stmt.limit(limit * 3)).scalars().all()

        scored = sorted(
            ((tag_score(asset, c), c) for c in candidates),
            key=lambda pair: pair[0],
            reverse=True,
        )
        return [to_match(c, float(score)) for score, c in scored[:limit]]

    def _search(self, db: Session, query: str, limit: int) -> List[Dict[str, Any]]:
        pattern = f"%{query}%"
        stmt = (
            self._candidates()
            .where(Asset.style.isnot(None))
            .where(
                or_(
                    Asset.title.ilike(pattern),
                    Asset.style.ilike(pattern),
                    Asset.mood.ilike(pattern),
                    Asset.artist.ilike(pattern),
                )
            )
            .order_by(Asset.created_at.desc())
            .limit(limit)
        )
        return [to_match(a, 0.0) for a in db.execute(stmt).scalars().all()]

    async def similar_to_asset(self, db: Session, asset: Asset, limit: int) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._similar, db, asset, limit)

    async def search_text(self, db: Session, query: str, limit: int) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._search, db, query, limit)


class SimilarityService:
    """Primary strategy with a fallback producing the same shape."""

    def __init__(self, primary: SearchStrategy, fallback: SearchStrategy):
        self.primary = primary
        self.fallback = fallback

    async def _with_fallback(self, name: str, *args) -> Tuple[List[Dict[str, Any]], str]:
        db = args[0]
        try:
            results = await getattr(self.primary, name)(*args)
            if results:
                return results, self.primary.method
        except Exception as e:
            logger.warning(f"{self.primary.method} {name} failed, using {self.fallback.method}: {e}")
            # A failed statement aborts the transaction on PostgreSQL
            await asyncio.to_thread(db.rollback)
        return await getattr(self.fallback, name)(*args), self.fallback.method

    async def similar_to_asset(self, db: Session, asset: Asset, limit: int) -> Tuple[List[Dict[str, Any]], str]:
        """Return (matches, method) for assets similar to ``asset``."""
        return await self._with_fallback("similar_to_asset", db, asset, limit)

    async def search_text(self, db: Session, query: str, limit: int) -> Tuple[List[Dict[str, Any]], str]:
        """Return (matches, method) for a free-text query."""
        return await self._with_fallback("search_text", db, query, limit)
