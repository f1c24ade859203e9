"""Pipeline run and control schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PipelineRunResponse(BaseModel):
    """One scheduled job invocation."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    run_type: str
    status: str
    total_items: int
    processed_items: int
    error_count: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_json")


class PipelineRunListResponse(BaseModel):
    runs: List[PipelineRunResponse]


class DripStatusResponse(BaseModel):
    """Drip sync actor status."""

    state: str
    running: bool
    paused: bool
    synced: int
    errors: int
    throttled: int
    started_at: Optional[str] = None
    last_sync_at: Optional[str] = None
    last_error: Optional[str] = None
    sleep_until: Optional[str] = None
    remaining: int
    rate: str


class WatcherStatusResponse(BaseModel):
    """Drive watcher status."""

    running: bool
    watching: bool
    poll_interval_sec: int
    run_count: int
    total_synced: int
    last_run_time: Optional[str] = None
    last_run_result: Optional[Dict[str, Any]] = None


class TaskQueuedResponse(BaseModel):
    """Response after dispatching a background task."""

    task_id: str
    task_name: str
    status: str = "queued"
