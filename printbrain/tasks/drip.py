"""Nightly downstream product sync."""

import asyncio
import logging
from typing import Any, Dict, Optional

from printbrain.celery_app import celery_app
from printbrain.config import settings
from printbrain.services.builders import build_drip
from printbrain.services.locks import single_flight
from printbrain.services.pipeline_runs import track_run

logger = logging.getLogger(__name__)


async def _sync(max_creates: int) -> Dict[str, Any]:
    # Quota exhaustion ends the nightly run instead of sleeping inside the worker
    drip = build_drip(max_creates=max_creates, sleep_on_throttle=False)
    try:
        return await drip.run()
    finally:
        await drip.client.close()


@celery_app.task(name="printbrain.tasks.drip.nightly_sync", bind=True)
def nightly_sync(self, max_creates: Optional[int] = None) -> Dict[str, Any]:
    """Create products for pending assets, capped per night."""
    max_creates = max_creates or settings.nightly_sync_max_variants

    with single_flight("nightly_sync") as acquired:
        if not acquired:
            return {"status": "skipped"}

        with track_run("shopify_sync", metadata={"max_creates": max_creates}) as run:
            result = asyncio.run(_sync(max_creates))
            run.update(
                total=result["synced"] + result["errors"],
                processed=result["synced"],
                errors=result["errors"],
                throttled=result["throttled"],
                remaining=result["remaining"],
            )

    logger.info(f"Nightly sync finished: {result['synced']} synced, {result['errors']} errors")
    return result
