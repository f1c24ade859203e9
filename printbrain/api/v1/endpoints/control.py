"""Control endpoints for the in-process workers and background tasks."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from printbrain.api.deps import get_drip, get_watcher
from printbrain.celery_app import celery_app
from printbrain.schemas.pipeline import DripStatusResponse, TaskQueuedResponse, WatcherStatusResponse
from printbrain.services.drip import DripWorker
from printbrain.services.watcher import DriveWatcher

logger = logging.getLogger(__name__)

router = APIRouter()

# Short name -> Celery task name
TASKS: Dict[str, str] = {
    "scan": "printbrain.tasks.drive_scan.scan_drive",
    "enrich": "printbrain.tasks.enrich.enrich_untagged",
    "embed": "printbrain.tasks.embeddings.embed_assets",
    "sync": "printbrain.tasks.drip.nightly_sync",
    "health": "printbrain.tasks.maintenance.health_probe",
    "trending": "printbrain.tasks.maintenance.refresh_trending_view",
}


# Drip sync


@router.post("/drip/start", response_model=DripStatusResponse)
async def start_drip(drip: DripWorker = Depends(get_drip)):
    """Start creating products for pending assets."""
    return drip.start()


@router.post("/drip/pause", response_model=DripStatusResponse)
async def pause_drip(drip: DripWorker = Depends(get_drip)):
    return drip.pause()


@router.post("/drip/resume", response_model=DripStatusResponse)
async def resume_drip(drip: DripWorker = Depends(get_drip)):
    return drip.resume()


@router.post("/drip/stop", response_model=DripStatusResponse)
async def stop_drip(drip: DripWorker = Depends(get_drip)):
    return await drip.stop()


@router.get("/drip/status", response_model=DripStatusResponse)
async def drip_status(drip: DripWorker = Depends(get_drip)):
    return drip.status()


# Drive watcher


@router.post("/watcher/start")
async def start_watcher(
    interval: int = Query(300, ge=30, le=86400, description="Poll interval in seconds"),
    watcher: DriveWatcher = Depends(get_watcher),
) -> Dict[str, Any]:
    """Start polling Drive for new files."""
    return watcher.start(interval)


@router.post("/watcher/stop")
async def stop_watcher(watcher: DriveWatcher = Depends(get_watcher)) -> Dict[str, Any]:
    return await watcher.stop()


@router.get("/watcher/status", response_model=WatcherStatusResponse)
async def watcher_status(watcher: DriveWatcher = Depends(get_watcher)):
    return watcher.status()


@router.post("/scan")
async def trigger_scan(watcher: DriveWatcher = Depends(get_watcher)) -> Dict[str, Any]:
    """
    Run one Drive scan now and wait for it.

    Returns ``{"status": "already_running"}`` when a scan is in progress.
    """
    return await watcher.run_once()


# Background tasks


@router.post("/tasks/{name}", response_model=TaskQueuedResponse, status_code=status.HTTP_202_ACCEPTED)
def dispatch_task(name: str):
    """
    Queue a pipeline task on the Celery worker.

    - **name**: scan, enrich, embed, sync, health or trending
    """
    task_name = TASKS.get(name)
    if task_name is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown task '{name}'. Available: {', '.join(sorted(TASKS))}",
        )

    try:
        task = celery_app.send_task(task_name)
    except Exception as e:
        logger.error(f"Failed to queue {task_name}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to queue task: {str(e)}",
        )

    return TaskQueuedResponse(task_id=task.id, task_name=task_name)


@router.get("/tasks/status/{task_id}")
def task_status(task_id: str) -> Dict[str, Any]:
    """State and result of a queued task."""
    try:
        result = celery_app.AsyncResult(task_id)
        response: Dict[str, Any] = {"task_id": task_id, "status": result.state}
        if result.ready():
            if result.successful():
                response["result"] = result.result
            else:
                response["error"] = str(result.info)
        elif result.state == "PROGRESS":
            response["result"] = result.info
        return response
    except Exception as e:
        logger.error(f"Failed to get task status: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get task status: {str(e)}",
        )
