"""Drip sync: create storefront products one by one under the daily quota.

``DripWorker`` is a small actor. Its state is one of ``stopped``,
``running``, ``paused`` or ``sleeping`` and it is driven by ``start``,
``pause``, ``resume`` and ``stop``. When Shopify reports the daily variant
quota as exhausted the worker sleeps until five minutes past the next
local midnight and then carries on.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from printbrain.database import SessionLocal, session_scope
from printbrain.services import asset_service
from printbrain.services.shopify_client import ShopifyClient, ThrottleError, build_product_payload

logger = logging.getLogger(__name__)

STOPPED = "stopped"
RUNNING = "running"
PAUSED = "paused"
SLEEPING = "sleeping"

BATCH_SIZE = 50
PACING_SEC = 1.0
PAUSE_POLL_SEC = 30.0
EMPTY_BATCH_SLEEP_SEC = 3600.0
UNKNOWN_ERROR_SLEEP_SEC = 10.0
PROGRESS_EVERY = 100
ABORT_ERROR_THRESHOLD = 500
WAKE_BUFFER_MS = 5 * 60 * 1000


def ms_until_local_midnight(now: datetime, utc_offset_hours: int = 1) -> int:
    """Milliseconds from ``now`` (UTC) until the next local midnight plus 5 minutes.

    Examples:
        >>> ms_until_local_midnight(datetime(2024, 6, 1, 22, 30))
        2100000
    """
    local = now + timedelta(hours=utc_offset_hours)
    hours_left = 24 - local.hour
    if local.hour == 0 and local.minute == 0:
        hours_left = 24
    return (hours_left * 3600 - local.minute * 60) * 1000 + WAKE_BUFFER_MS


class DripWorker:
    """Supervised product-creation loop.

    Args:
        client: Shopify client
        session_factory: Session factory for DB reads/writes
        batch_size: Rows fetched per batch
        pacing: Seconds between product creates
        utc_offset_hours: Local offset used for the midnight wake-up
        max_creates: Stop after this many products (None = unlimited)
        sleep_on_throttle: Sleep to midnight on quota exhaustion, else stop
        sleep: Async sleep
        now: UTC clock
    """

    def __init__(
        self,
        client: ShopifyClient,
        session_factory: Callable[[], Session] = SessionLocal,
        batch_size: int = BATCH_SIZE,
        pacing: float = PACING_SEC,
        utc_offset_hours: int = 1,
        max_creates: Optional[int] = None,
        sleep_on_throttle: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = datetime.utcnow,
    ):
        self.client = client
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.pacing = pacing
        self.utc_offset_hours = utc_offset_hours
        self.max_creates = max_creates
        self.sleep_on_throttle = sleep_on_throttle
        self._sleep = sleep
        self._now = now
        self.state = STOPPED
        self._task: Optional[asyncio.Task] = None
        self._reset_stats()

    def _reset_stats(self) -> None:
        self.synced = 0
        self.errors = 0
        self.throttled = 0
        self.started_at: Optional[datetime] = None
        self.last_sync_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.sleep_until: Optional[datetime] = None
        self.remaining = 0

    # Messages

    def start(self) -> Dict[str, Any]:
        """Start the loop as a background task on the running event loop."""
        if self.state != STOPPED or (self._task and not self._task.done()):
            return self.status()
        self._begin()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        return self.status()

    def pause(self) -> Dict[str, Any]:
        if self.state == RUNNING:
            self.state = PAUSED
            logger.info("Drip sync paused")
        return self.status()

    def resume(self) -> Dict[str, Any]:
        if self.state == PAUSED:
            self.state = RUNNING
            logger.info("Drip sync resumed")
        return self.status()

    async def stop(self) -> Dict[str, Any]:
        self.state = STOPPED
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Drip sync stopped")
        return self.status()

    # DB helpers run in worker threads

    def _load_batch(self) -> List[Tuple[str, str, dict]]:
        with session_scope(self.session_factory) as db:
            assets = asset_service.fetch_pending_sync(db, limit=self.batch_size)
            return [(a.id, a.title or "", build_product_payload(a)) for a in assets]

    def _count_remaining(self) -> int:
        with session_scope(self.session_factory) as db:
            return asset_service.count_pending_sync(db)

    def _mark_synced(self, asset_id: str, product_id: str, gid: str) -> None:
        with session_scope(self.session_factory) as db:
            asset_service.mark_synced(db, asset_id, product_id, gid)

    def _mark_error(self, asset_id: str, message: str) -> None:
        with session_scope(self.session_factory) as db:
            asset_service.mark_sync_error(db, asset_id, message)

    async def _refresh_remaining(self) -> int:
        self.remaining = await asyncio.to_thread(self._count_remaining)
        return self.remaining

    def _cap_reached(self) -> bool:
        return self.max_creates is not None and self.synced >= self.max_creates

    async def process_batch(self) -> int:
        """Create products for one batch of pending assets.

        Returns:
            Number of assets fetched (0 means nothing is processable)

        Raises:
            ThrottleError: Daily quota exhausted, handled by the loop
        """
        batch = await asyncio.to_thread(self._load_batch)
        for asset_id, title, payload in batch:
            if self.state != RUNNING or self._cap_reached():
                break
            try:
                product_id, gid = await self.client.create_product(payload)
                await asyncio.to_thread(self._mark_synced, asset_id, product_id, gid)
                self.synced += 1
                self.last_sync_at = self._now()
                if self.synced % PROGRESS_EVERY == 0:
                    await self._refresh_remaining()
                    logger.info(
                        f"Drip progress: {self.synced} synced, {self.errors} errors, "
                        f"{self.remaining} remaining"
                    )
            except ThrottleError:
                raise
            except Exception as e:
                self.errors += 1
                self.last_error = f"{title[:30]}: {str(e)[:100]}"
                logger.warning(f"Product create failed for {asset_id}: {e}")
                await asyncio.to_thread(self._mark_error, asset_id, str(e))
            await self._sleep(self.pacing)
        return len(batch)

    async def throttle_hit(self) -> None:
        """Sleep until shortly after the next local midnight."""
        self.throttled += 1
        wait_ms = ms_until_local_midnight(self._now(), self.utc_offset_hours)
        self.sleep_until = self._now() + timedelta(milliseconds=wait_ms)
        logger.warning(
            f"Daily variant limit hit after {self.synced} syncs, "
            f"sleeping {wait_ms / 3600000:.1f}h until {self.sleep_until.isoformat()}"
        )
        self.state = SLEEPING
        await self._sleep(wait_ms / 1000)
        self.sleep_until = None
        if self.state == SLEEPING:
            self.state = RUNNING
            logger.info("Drip sync waking up after quota reset")

    def _begin(self) -> None:
        self._reset_stats()
        self.state = RUNNING
        self.started_at = self._now()

    async def run(self) -> Dict[str, Any]:
        """Run the loop until everything is synced, stopped, capped or aborted."""
        if self.state != STOPPED:
            return self.status()
        self._begin()
        return await self._loop()

    async def _loop(self) -> Dict[str, Any]:
        try:
            await self._refresh_remaining()
        except Exception as e:
            self.last_error = str(e)[:200]
            logger.error(f"Drip sync could not count pending assets: {e}", exc_info=True)
            self.state = STOPPED
            return self.status()
        logger.info(f"Drip sync started, {self.remaining} products to create")

        while self.state != STOPPED:
            if self.state == PAUSED:
                await self._sleep(PAUSE_POLL_SEC)
                continue
            try:
                fetched = await self.process_batch()
                if self._cap_reached():
                    logger.info(f"Drip sync reached its cap of {self.max_creates} creates")
                    self.state = STOPPED
                    break
                if self.errors > ABORT_ERROR_THRESHOLD and self.errors > self.synced:
                    logger.error(f"Drip sync aborting: {self.errors} errors vs {self.synced} synced")
                    self.state = STOPPED
                    break
                if fetched == 0:
                    if await self._refresh_remaining() == 0:
                        logger.info(f"All products synced ({self.synced} this run)")
                        self.state = STOPPED
                        break
                    logger.warning(f"{self.remaining} remaining but none processable, sleeping 1h")
                    await self._sleep(EMPTY_BATCH_SLEEP_SEC)
            except ThrottleError:
                if not self.sleep_on_throttle:
                    self.throttled += 1
                    logger.warning("Daily variant limit hit, ending run")
                    self.state = STOPPED
                    break
                await self.throttle_hit()
            except asyncio.CancelledError:
                self.state = STOPPED
                raise
            except Exception as e:
                self.last_error = str(e)[:200]
                logger.error(f"Drip sync unexpected error: {self.last_error}", exc_info=True)
                await self._sleep(UNKNOWN_ERROR_SLEEP_SEC)

        return self.status()

    def status(self) -> Dict[str, Any]:
        rate = "0/hr"
        if self.synced and self.started_at:
            hours = (self._now() - self.started_at).total_seconds() / 3600
            if hours > 0:
                rate = f"{self.synced / hours:.0f}/hr"
        return {
            "state": self.state,
            "running": self.state != STOPPED,
            "paused": self.state == PAUSED,
            "synced": self.synced,
            "errors": self.errors,
            "throttled": self.throttled,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "last_error": self.last_error,
            "sleep_until": self.sleep_until.isoformat() if self.sleep_until else None,
            "remaining": self.remaining,
            "rate": rate,
        }
