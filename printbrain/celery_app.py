"""Celery application and beat schedule."""

import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from printbrain.config import settings


def utc_hour(local_hour: int) -> int:
    """Convert an hour in the fixed local offset to UTC.

    >>> utc_hour(1)
    0
    """
    return (local_hour - settings.local_utc_offset_hours) % 24


celery_app = Celery(
    "printbrain",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "printbrain.tasks.drive_scan",
        "printbrain.tasks.enrich",
        "printbrain.tasks.embeddings",
        "printbrain.tasks.drip",
        "printbrain.tasks.maintenance",
    ],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "drive-delta-scan": {
        "task": "printbrain.tasks.drive_scan.scan_drive",
        "schedule": float(settings.drive_poll_interval_sec),
    },
    "nightly-ingest": {
        "task": "printbrain.tasks.enrich.enrich_untagged",
        "schedule": crontab(hour=utc_hour(settings.nightly_ingest_hour), minute=0),
    },
    "nightly-sync": {
        "task": "printbrain.tasks.drip.nightly_sync",
        "schedule": crontab(hour=utc_hour(settings.nightly_sync_hour), minute=0),
    },
    "health-probe": {
        "task": "printbrain.tasks.maintenance.health_probe",
        "schedule": crontab(hour="*/6", minute=0),
    },
    "refresh-trending": {
        "task": "printbrain.tasks.maintenance.refresh_trending_view",
        "schedule": crontab(minute=15),
    },
}


@setup_logging.connect
def configure_logging(**kwargs):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
