"""Multi-process enrichment ("turbo" mode).

The master pages through untagged asset ids, splits them across worker
processes and aggregates their progress. Each worker runs its own lanes
pool. Messages on the channel:

- master -> worker: ``{"ids": [...]}``
- worker -> master: ``{"type": "progress", ...}`` every few seconds
- worker -> master: ``{"type": "done", ...}`` once finished
"""

import argparse
import asyncio
import logging
import math
import multiprocessing
import queue as queue_module
import time
from typing import Any, Dict, List, Optional

from printbrain.config import settings
from printbrain.database import SessionLocal, session_scope
from printbrain.services import asset_service
from printbrain.services.enrichment import EnrichmentStats, EnrichmentWorker
from printbrain.services.tagger import ArtTagger

logger = logging.getLogger(__name__)

ID_PAGE_SIZE = 5000
DONE_TIMEOUT_SEC = 6 * 3600


def collect_untagged_ids(limit: Optional[int] = None, force: bool = False, session_factory=SessionLocal) -> List[str]:
    """Page through ids needing enrichment in id order."""
    ids: List[str] = []
    after: Optional[str] = None
    while True:
        with session_scope(session_factory) as db:
            page = asset_service.fetch_untagged_ids(db, after_id=after, limit=ID_PAGE_SIZE, force=force)
        if not page:
            break
        ids.extend(page)
        after = page[-1]
        if limit and len(ids) >= limit:
            return ids[:limit]
        if len(page) < ID_PAGE_SIZE:
            break
    return ids


def split_ids(ids: List[str], workers: int) -> List[List[str]]:
    """Split ids into at most ``workers`` contiguous chunks of ceil size."""
    if not ids:
        return []
    size = math.ceil(len(ids) / max(1, workers))
    return [ids[i : i + size] for i in range(0, len(ids), size)]


def _worker_main(worker_index: int, inbox, outbox, lanes: int) -> None:
    """Worker process entry point."""
    logging.basicConfig(level=logging.INFO, format=f"%(asctime)s [w{worker_index}] %(levelname)s %(message)s")
    message = inbox.get()
    ids = message.get("ids") or []

    def report(stats: EnrichmentStats) -> None:
        outbox.put({"type": "progress", "worker": worker_index, "tagged": stats.tagged, "errors": stats.errors})

    async def run() -> EnrichmentStats:
        tagger = ArtTagger(api_key=settings.openai_api_key, model=settings.openai_model)
        try:
            worker = EnrichmentWorker(
                tagger,
                batch_size=settings.enrich_batch_size,
                lanes=lanes,
                progress=report,
            )
            return await worker.run(ids)
        finally:
            await tagger.close()

    try:
        stats = asyncio.run(run())
        outbox.put({"type": "done", "worker": worker_index, "tagged": stats.tagged, "errors": stats.errors})
    except Exception as e:
        logging.getLogger(__name__).error(f"Worker {worker_index} crashed: {e}", exc_info=True)
        outbox.put({"type": "done", "worker": worker_index, "tagged": 0, "errors": len(ids), "error": str(e)})


def run_turbo(
    workers: int = 10,
    lanes: int = 8,
    limit: Optional[int] = None,
    force: bool = False,
) -> Dict[str, Any]:
    """Enrich all untagged assets across ``workers`` processes.

    Returns:
        Aggregate ``{"total", "tagged", "errors", "workers", "elapsed"}``
    """
    started = time.monotonic()
    ids = collect_untagged_ids(limit=limit, force=force)
    chunks = split_ids(ids, workers)
    logger.info(f"Turbo enrichment: {len(ids)} assets across {len(chunks)} workers x {lanes} lanes")
    if not chunks:
        return {"total": 0, "tagged": 0, "errors": 0, "workers": 0, "elapsed": 0.0}

    ctx = multiprocessing.get_context("spawn")
    outbox = ctx.Queue()
    processes = []
    for index, chunk in enumerate(chunks):
        inbox = ctx.Queue()
        process = ctx.Process(target=_worker_main, args=(index, inbox, outbox, lanes), daemon=False)
        process.start()
        inbox.put({"ids": chunk})
        processes.append(process)

    progress: Dict[int, Dict[str, int]] = {}
    done = 0
    while done < len(processes):
        try:
            message = outbox.get(timeout=DONE_TIMEOUT_SEC)
        except queue_module.Empty:
            logger.error("Turbo enrichment timed out waiting for workers")
            break
        progress[message["worker"]] = {"tagged": message["tagged"], "errors": message["errors"]}
        if message["type"] == "done":
            done += 1
        tagged = sum(p["tagged"] for p in progress.values())
        errors = sum(p["errors"] for p in progress.values())
        rate = tagged / max(time.monotonic() - started, 1e-6)
        logger.info(f"Turbo progress: {tagged} tagged, {errors} errors, {done}/{len(processes)} done ({rate:.1f}/s)")

    for process in processes:
        process.join(timeout=30)

    return {
        "total": len(ids),
        "tagged": sum(p["tagged"] for p in progress.values()),
        "errors": sum(p["errors"] for p in progress.values()),
        "workers": len(processes),
        "elapsed": round(time.monotonic() - started, 2),
    }


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Multi-process artwork enrichment")
    parser.add_argument("--workers", type=int, default=settings.enrich_workers)
    parser.add_argument("--lanes", type=int, default=settings.enrich_lanes)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument("--force", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    result = run_turbo(workers=args.workers, lanes=args.lanes, limit=args.limit, force=args.force)
    logger.info(f"Turbo enrichment finished: {result}")


if __name__ == "__main__":
    main()
