"""Drive watcher: polls the scanner on a fixed interval."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from printbrain.services.drive_scanner import DriveScanner

logger = logging.getLogger(__name__)


class DriveWatcher:
    """Run ``DriveScanner.run_once`` every ``interval`` seconds.

    The watcher lives on the caller's event loop; ``start`` returns
    immediately and ``stop`` cancels the polling task.
    """

    def __init__(self, scanner: DriveScanner):
        self.scanner = scanner
        self.poll_interval_sec = 300
        self.run_count = 0
        self.total_synced = 0
        self.last_run_time: Optional[datetime] = None
        self.last_run_result: Optional[Dict[str, Any]] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def watching(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Dict[str, Any]:
        """Trigger one scan and record its outcome."""
        try:
            result = await self.scanner.run_once()
        except Exception as e:
            logger.error(f"Drive scan failed: {e}", exc_info=True)
            result = {"status": "error", "error": str(e)}

        if result.get("status") != "already_running":
            self.run_count += 1
            self.total_synced += result.get("inserted", 0)
            self.last_run_time = datetime.utcnow()
            self.last_run_result = result
        return result

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.poll_interval_sec)

    def start(self, interval: int = 300) -> Dict[str, Any]:
        """Start polling; a no-op when already watching."""
        if self.watching:
            return {"status": "already_watching", **self.status()}
        self.poll_interval_sec = interval
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Drive watcher started (every {interval}s)")
        return {"status": "started", **self.status()}

    async def stop(self) -> Dict[str, Any]:
        """Stop polling and wait for the task to unwind."""
        if self._task is None:
            return {"status": "not_watching", **self.status()}
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Drive watcher stopped")
        return {"status": "stopped", **self.status()}

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.scanner.is_running,
            "watching": self.watching,
            "poll_interval_sec": self.poll_interval_sec,
            "run_count": self.run_count,
            "total_synced": self.total_synced,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "last_run_result": self.last_run_result,
        }
