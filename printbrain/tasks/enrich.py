"""Nightly enrichment of untagged assets."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from printbrain.celery_app import celery_app
from printbrain.config import settings
from printbrain.services.builders import build_shopify, build_tagger
from printbrain.services.enrichment import EnrichmentWorker
from printbrain.services.enrichment_turbo import collect_untagged_ids
from printbrain.services.locks import single_flight
from printbrain.services.pipeline_runs import track_run

logger = logging.getLogger(__name__)


async def _enrich(asset_ids: List[str], concurrency: int, push_tags: bool) -> Dict[str, Any]:
    tagger = build_tagger()
    shopify = build_shopify() if push_tags else None
    try:
        worker = EnrichmentWorker(
            tagger,
            batch_size=settings.enrich_batch_size,
            lanes=concurrency,
            tag_pusher=shopify.update_product_tags if shopify else None,
        )
        stats = await worker.run(asset_ids)
        return stats.to_dict()
    finally:
        await tagger.close()
        if shopify is not None:
            await shopify.close()


@celery_app.task(name="printbrain.tasks.enrich.enrich_untagged", bind=True)
def enrich_untagged(
    self,
    limit: Optional[int] = None,
    concurrency: Optional[int] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """Classify up to ``limit`` assets that have no style yet.

    Args:
        limit: Maximum assets (defaults to the nightly limit)
        concurrency: Concurrent model calls (defaults to the nightly concurrency)
        force: Re-classify assets that already have tags
    """
    limit = limit or settings.nightly_ingest_limit
    concurrency = concurrency or settings.nightly_ingest_concurrency

    with single_flight("enrich") as acquired:
        if not acquired:
            return {"status": "skipped"}

        with track_run("enrichment", metadata={"limit": limit, "concurrency": concurrency}) as run:
            asset_ids = collect_untagged_ids(limit=limit, force=force)
            logger.info(f"Nightly enrichment: {len(asset_ids)} assets to classify")
            if not asset_ids:
                return {"status": "ok", "total": 0, "tagged": 0, "errors": 0}

            self.update_state(state="PROGRESS", meta={"total": len(asset_ids)})
            result = asyncio.run(_enrich(asset_ids, concurrency, settings.shopify_push_tags))
            run.update(
                total=result["total"],
                processed=result["tagged"],
                errors=result["errors"],
                tags_pushed=result["tags_pushed"],
            )

    return {"status": "ok", **result}
