"""Pipeline run bookkeeping for scheduled jobs."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Generator, List, Optional

from sqlalchemy.orm import Session

from printbrain.database import SessionLocal, session_scope
from printbrain.models.pipeline_run import PipelineRun

logger = logging.getLogger(__name__)


class RunTracker:
    """Counters filled in by a job while its run row is open."""

    def __init__(self, run_id: int):
        self.run_id = run_id
        self.total_items = 0
        self.processed_items = 0
        self.error_count = 0
        self.metadata: Dict[str, Any] = {}

    def update(self, total: int = 0, processed: int = 0, errors: int = 0, **metadata) -> None:
        self.total_items += total
        self.processed_items += processed
        self.error_count += errors
        self.metadata.update(metadata)


def start_run(db: Session, run_type: str, metadata: Optional[Dict[str, Any]] = None) -> PipelineRun:
    run = PipelineRun(run_type=run_type, status="running", metadata_json=metadata or {})
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def finish_run(db: Session, run_id: int, status: str, tracker: Optional[RunTracker] = None) -> None:
    run = db.query(PipelineRun).filter(PipelineRun.id == run_id).first()
    if run is None:
        logger.warning(f"Pipeline run {run_id} vanished before completion")
        return
    run.status = status
    run.finished_at = datetime.utcnow()
    if tracker is not None:
        run.total_items = tracker.total_items
        run.processed_items = tracker.processed_items
        run.error_count = tracker.error_count
        run.metadata_json = {**(run.metadata_json or {}), **tracker.metadata}
    db.commit()


def list_runs(db: Session, limit: int = 50) -> List[PipelineRun]:
    return db.query(PipelineRun).order_by(PipelineRun.started_at.desc(), PipelineRun.id.desc()).limit(limit).all()


@contextmanager
def track_run(
    run_type: str,
    session_factory: Callable[[], Session] = SessionLocal,
    metadata: Optional[Dict[str, Any]] = None,
) -> Generator[RunTracker, None, None]:
    """
    Record a pipeline run around a block.

    The row is created as ``running`` and closed as ``completed``,
    ``completed_with_errors`` (when the tracker counted errors) or
    ``failed`` (when the block raised).

    Example:
        >>> with track_run("drive_scan") as run:
        ...     run.update(total=10, processed=9, errors=1)
    """
    with session_scope(session_factory) as db:
        run_id = start_run(db, run_type, metadata).id
    tracker = RunTracker(run_id)
    try:
        yield tracker
    except Exception as e:
        tracker.metadata["error"] = str(e)[:500]
        with session_scope(session_factory) as db:
            finish_run(db, run_id, "failed", tracker)
        raise
    status = "completed_with_errors" if tracker.error_count else "completed"
    with session_scope(session_factory) as db:
        finish_run(db, run_id, status, tracker)
