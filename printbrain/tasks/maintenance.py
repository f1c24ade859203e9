"""Health probe and trending refresh tasks."""

import asyncio
import logging
from typing import Any, Dict

from sqlalchemy import text

from printbrain.celery_app import celery_app
from printbrain.database import SessionLocal, session_scope
from printbrain.services import analytics_service, asset_service
from printbrain.services.locks import get_redis, single_flight
from printbrain.services.pipeline_runs import track_run
from printbrain.storage.factory import get_drive_driver

logger = logging.getLogger(__name__)


async def _check_drive() -> str:
    driver = get_drive_driver()
    try:
        return "connected" if await driver.test_connection() else "unreachable"
    finally:
        await driver.close()


def probe() -> Dict[str, Any]:
    """Check store, Drive auth and cache, returning a status per dependency."""
    report: Dict[str, Any] = {}

    try:
        with session_scope(SessionLocal) as db:
            db.execute(text("SELECT 1"))
            report["assets"] = asset_service.count_assets(db)
        report["db"] = "connected"
    except Exception as e:
        report["db"] = f"error: {str(e)}"

    try:
        report["drive"] = asyncio.run(_check_drive())
    except Exception as e:
        report["drive"] = f"error: {str(e)}"

    try:
        info = get_redis().info("memory")
        report["redis"] = "connected"
        report["redis_memory"] = info.get("used_memory_human")
    except Exception as e:
        report["redis"] = f"error: {str(e)}"

    healthy = all(report[key] == "connected" for key in ("db", "drive", "redis"))
    report["status"] = "ok" if healthy else "degraded"
    return report


@celery_app.task(name="printbrain.tasks.maintenance.health_probe")
def health_probe() -> Dict[str, Any]:
    with single_flight("health_probe", timeout=600) as acquired:
        if not acquired:
            return {"status": "skipped"}

        with track_run("health_check") as run:
            report = probe()
            run.update(errors=0 if report["status"] == "ok" else 1, **report)

    if report["status"] != "ok":
        logger.warning(f"Health probe degraded: {report}")
    return report


@celery_app.task(name="printbrain.tasks.maintenance.refresh_trending_view")
def refresh_trending_view() -> Dict[str, Any]:
    """Refresh the trending products materialized view."""
    with single_flight("refresh_trending", timeout=600) as acquired:
        if not acquired:
            return {"status": "skipped"}

        with session_scope(SessionLocal) as db:
            analytics_service.refresh_trending(db)

    logger.info("Trending view refreshed")
    return {"status": "ok"}
