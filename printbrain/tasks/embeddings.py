"""Embedding generation task."""

import asyncio
import logging
from typing import Any, Dict

from printbrain.celery_app import celery_app
from printbrain.services.builders import build_embedder
from printbrain.services.embedding import EmbeddingWorker
from printbrain.services.locks import single_flight
from printbrain.services.pipeline_runs import track_run

logger = logging.getLogger(__name__)


async def _embed(embedder, limit: int, force: bool) -> Dict[str, Any]:
    try:
        stats = await EmbeddingWorker(embedder).run(limit=limit, force=force)
        return stats.to_dict()
    finally:
        await embedder.close()


@celery_app.task(name="printbrain.tasks.embeddings.embed_assets", bind=True)
def embed_assets(self, limit: int = 10000, force: bool = False) -> Dict[str, Any]:
    """Embed enriched assets that have no vector yet."""
    embedder = build_embedder()
    if embedder is None:
        logger.warning("GEMINI_API_KEY not set, skipping embeddings")
        return {"status": "not_configured"}

    with single_flight("embeddings") as acquired:
        if not acquired:
            asyncio.run(embedder.close())
            return {"status": "skipped"}

        with track_run("embeddings", metadata={"limit": limit, "force": force}) as run:
            result = asyncio.run(_embed(embedder, limit, force))
            run.update(total=result["total"], processed=result["embedded"], errors=result["errors"])

    return {"status": "ok", **result}
