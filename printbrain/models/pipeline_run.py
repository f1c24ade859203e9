"""Pipeline run model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from printbrain.database import Base
from printbrain.models.types import JSONType

RUN_STATUSES = ("running", "completed", "completed_with_errors", "failed")


class PipelineRun(Base):
    """One row per scheduled job invocation."""

    __tablename__ = "pipeline_runs"

    id = Column(Integer, primary_key=True, index=True)
    run_type = Column(String(50), nullable=False, index=True)
    status = Column(String(30), nullable=False, default="running")
    total_items = Column(Integer, nullable=False, default=0)
    processed_items = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    finished_at = Column(DateTime, nullable=True)
    metadata_json = Column("metadata", JSONType, nullable=True)

    def __repr__(self):
        return f"<PipelineRun(id={self.id}, run_type={self.run_type}, status={self.status})>"
