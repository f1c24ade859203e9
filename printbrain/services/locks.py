"""Cross-process single-flight locks for scheduled jobs (Redis)."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

import redis

from printbrain.config import settings

logger = logging.getLogger(__name__)

LOCK_PREFIX = "printbrain:lock:"
DEFAULT_LOCK_TIMEOUT = 6 * 3600


def get_redis() -> redis.Redis:
    return redis.from_url(settings.redis_url)


@contextmanager
def single_flight(
    name: str,
    timeout: int = DEFAULT_LOCK_TIMEOUT,
    client: Optional[redis.Redis] = None,
) -> Generator[bool, None, None]:
    """
    Try to take a named lock without waiting.

    Yields True when the lock was acquired and False when another run
    holds it. The lock expires after ``timeout`` seconds so a crashed
    worker cannot block the job forever.

    Example:
        >>> with single_flight("drive_scan") as acquired:
        ...     if not acquired:
        ...         return {"status": "skipped"}
    """
    client = client or get_redis()
    lock = client.lock(f"{LOCK_PREFIX}{name}", timeout=timeout)
    acquired = lock.acquire(blocking=False)
    if not acquired:
        logger.info(f"{name} already running, skipping this trigger")
    try:
        yield acquired
    finally:
        if acquired:
            try:
                lock.release()
            except redis.exceptions.LockError:
                logger.warning(f"Lock {name} expired before release")
