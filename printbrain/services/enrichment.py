"""Enrichment worker: classify untagged assets and write tags back.

Batches stream through a lanes pool: each lane sends the next batch to
the model as soon as its previous call returns. Results collect in a
shared pending-writes buffer drained by a single-flight flusher.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from printbrain.database import SessionLocal, session_scope
from printbrain.services import asset_service
from printbrain.services.concurrency import run_lanes
from printbrain.services.tagger import ArtTagger, TaggerError

logger = logging.getLogger(__name__)

FETCH_CHUNK = 200
PROGRESS_INTERVAL_SEC = 5.0


@dataclass
class AssetRef:
    """Fields the classifier needs, detached from the session."""

    id: str
    title: Optional[str]
    artist: Optional[str]
    ratio_class: Optional[str] = None
    quality_tier: Optional[str] = None
    shopify_product_id: Optional[str] = None


@dataclass
class EnrichmentStats:
    """Counters for one enrichment run."""

    total: int = 0
    tagged: int = 0
    errors: int = 0
    batches: int = 0
    tags_pushed: int = 0
    elapsed: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


class EnrichmentWorker:
    """Classify assets in batches and persist the results.

    Args:
        tagger: Model client
        session_factory: Session factory for DB reads/writes
        batch_size: Assets per model call
        lanes: Concurrent model calls
        flush_size: Rows per flush sub-batch
        write_timeout: Seconds allowed per row update
        write_attempts: Attempts per row update
        tag_pusher: Optional ``async (product_id, tags) -> None`` pushing tags downstream
        progress: Optional callback receiving the stats every few seconds
    """

    def __init__(
        self,
        tagger: ArtTagger,
        session_factory: Callable[[], Session] = SessionLocal,
        batch_size: int = 25,
        lanes: int = 8,
        flush_size: int = 25,
        write_timeout: float = 15.0,
        write_attempts: int = 3,
        tag_pusher: Optional[Callable[[str, List[str]], Any]] = None,
        progress: Optional[Callable[[EnrichmentStats], None]] = None,
    ):
        self.tagger = tagger
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.lanes = lanes
        self.flush_size = flush_size
        self.write_timeout = write_timeout
        self.write_attempts = write_attempts
        self.tag_pusher = tag_pusher
        self.progress = progress

    # DB helpers run in worker threads, one session each

    def _load(self, asset_ids: Sequence[str]) -> List[AssetRef]:
        refs: List[AssetRef] = []
        for start in range(0, len(asset_ids), FETCH_CHUNK):
            with session_scope(self.session_factory) as db:
                for a in asset_service.fetch_assets_by_ids(db, asset_ids[start : start + FETCH_CHUNK]):
                    refs.append(
                        AssetRef(
                            id=a.id,
                            title=a.title,
                            artist=a.artist,
                            ratio_class=a.ratio_class,
                            quality_tier=a.quality_tier,
                            shopify_product_id=a.shopify_product_id,
                        )
                    )
        return refs

    def _write(self, asset_id: str, tags: Dict[str, Any]) -> bool:
        with session_scope(self.session_factory) as db:
            return asset_service.apply_enrichment(db, asset_id, tags)

    async def write_one(self, asset_id: str, tags: Dict[str, Any]) -> bool:
        """Update one row with a timeout, retrying with 300ms * n back-off."""
        for attempt in range(1, self.write_attempts + 1):
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(self._write, asset_id, tags), timeout=self.write_timeout
                )
            except Exception as e:
                logger.warning(f"Write for {asset_id} failed (attempt {attempt}): {e}")
                if attempt < self.write_attempts:
                    await asyncio.sleep(0.3 * attempt)
        return False

    async def run(self, asset_ids: Sequence[str]) -> EnrichmentStats:
        """Classify and persist the given assets."""
        started = time.monotonic()
        stats = EnrichmentStats()
        refs = await asyncio.to_thread(self._load, list(asset_ids))
        stats.total = len(refs)
        if not refs:
            return stats

        batches = [refs[i : i + self.batch_size] for i in range(0, len(refs), self.batch_size)]
        pending: List[tuple] = []
        written: List[tuple] = []
        flush_lock = asyncio.Lock()
        last_report = {"at": time.monotonic()}

        async def drain() -> None:
            while pending:
                chunk = pending[: self.flush_size]
                del pending[: self.flush_size]
                results = await asyncio.gather(*(self.write_one(ref.id, tags) for ref, tags in chunk))
                for (ref, tags), ok in zip(chunk, results):
                    if ok:
                        stats.tagged += 1
                        written.append((ref, tags))
                    else:
                        stats.errors += 1

        async def flush(force: bool = False) -> None:
            # Single flight: a lane that finds a flush running moves on
            if flush_lock.locked() and not force:
                return
            async with flush_lock:
                await drain()

        async def process(batch: List[AssetRef], index: int) -> None:
            stats.batches += 1
            try:
                results = await self.tagger.classify(batch)
            except TaggerError as e:
                logger.error(f"Batch {index} failed: {e}")
                stats.errors += len(batch)
                results = []
            else:
                if len(results) < len(batch):
                    stats.errors += len(batch) - len(results)
                for ref, tags in zip(batch, results):
                    if tags.get("style"):
                        pending.append((ref, tags))
                    else:
                        stats.errors += 1

            if len(pending) >= self.flush_size:
                await flush()

            if self.progress and time.monotonic() - last_report["at"] > PROGRESS_INTERVAL_SEC:
                last_report["at"] = time.monotonic()
                self.progress(stats)

        await run_lanes(batches, process, self.lanes)
        await flush(force=True)

        if self.tag_pusher:
            stats.tags_pushed = await self.push_tags(written)

        stats.elapsed = round(time.monotonic() - started, 2)
        logger.info(
            f"Enrichment done: {stats.tagged} tagged, {stats.errors} errors "
            f"in {stats.batches} batches ({stats.elapsed}s)"
        )
        return stats

    async def push_tags(self, written: List[tuple], pacing: float = 0.3) -> int:
        """Push fresh tags to already-synced products, one call per 300ms."""
        pushed = 0
        for ref, tags in written:
            if not ref.shopify_product_id:
                continue
            try:
                await self.tag_pusher(ref.shopify_product_id, product_tags(ref, tags))
                pushed += 1
            except Exception as e:
                logger.warning(f"Tag push failed for product {ref.shopify_product_id}: {e}")
            await asyncio.sleep(pacing)
        return pushed


def product_tags(asset: Any, tags: Optional[Dict[str, Any]] = None) -> List[str]:
    """Storefront tag list for an asset.

    ``tags`` overrides the asset's own enrichment fields when given.
    """
    source = tags or {}

    def pick(field):
        return source.get(field) if field in source else getattr(asset, field, None)

    result: List[str] = []
    ratio_class = getattr(asset, "ratio_class", None)
    if ratio_class:
        result.append(ratio_class.replace("_", " "))
    tier = getattr(asset, "quality_tier", None)
    result.append("museum grade" if tier == "high" else "gallery grade")
    for field in ("style", "era", "mood", "subject", "palette"):
        value = pick(field)
        if value:
            result.append(value)
    result.extend(["art print", "fine art", "wall art"])
    for tag in pick("ai_tags") or []:
        if tag and tag not in result:
            result.append(tag)
    return result
