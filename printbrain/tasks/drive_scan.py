"""Drive scan task."""

import asyncio
import logging
from typing import Any, Dict

from printbrain.celery_app import celery_app
from printbrain.services.builders import build_scanner
from printbrain.services.locks import single_flight
from printbrain.services.pipeline_runs import track_run

logger = logging.getLogger(__name__)


async def _scan() -> Dict[str, Any]:
    scanner = build_scanner()
    try:
        return await scanner.run_once()
    finally:
        await scanner.driver.close()


@celery_app.task(name="printbrain.tasks.drive_scan.scan_drive", bind=True)
def scan_drive(self) -> Dict[str, Any]:
    """Scan Drive for new artwork (delta when a page token is saved).

    Returns:
        Scanner result dict, or ``{"status": "skipped"}`` when another
        scan holds the lock
    """
    with single_flight("drive_scan") as acquired:
        if not acquired:
            return {"status": "skipped"}

        with track_run("drive_scan") as run:
            self.update_state(state="PROGRESS", meta={"stage": "scanning"})
            result = asyncio.run(_scan())
            run.update(
                total=result.get("files_found", 0),
                processed=result.get("inserted", 0),
                errors=result.get("errors", 0),
                mode=result.get("mode"),
                skipped=result.get("skipped", 0),
            )

    logger.info(f"Drive scan task finished: {result}")
    return result
