from __future__ import annotations

import asyncio
import logging
from typing import Optional, Set

from ..config import settings
from ..models import BatchSyncResult
from .mirror import CalendarMirror, SessionFactory

logger = logging.getLogger(__name__)


class CalendarSyncJob:
    """Periodic rescan of todos that never made it to the calendar.

    Scans immediately on start and then every ``interval_seconds``. The
    ticker does not wait for a scan to finish before scheduling the next,
    so a slow scan can overlap the following one.
    """

    def __init__(
        self,
        mirror: CalendarMirror,
        session_factory: SessionFactory,
        interval_seconds: Optional[float] = None,
        min_interval: float = 1.0,
    ):
        self.mirror = mirror
        self.session_factory = session_factory
        self.interval_seconds = float(
            interval_seconds if interval_seconds is not None else settings.CALENDAR_SYNC_INTERVAL_SECONDS
        )
        self.min_interval = min_interval
        self._ticker: Optional[asyncio.Task] = None
        self._scans: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    def run_once(self) -> BatchSyncResult:
        """One blocking scan over all users."""
        db = self.session_factory()
        try:
            return self.mirror.sync_all(db)
        finally:
            db.close()

    async def _scan(self) -> None:
        try:
            await asyncio.to_thread(self.run_once)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("calendar sync scan failed")

    def _spawn_scan(self) -> None:
        task = asyncio.create_task(self._scan())
        self._scans.add(task)
        task.add_done_callback(self._scans.discard)

    async def _tick(self) -> None:
        sleep_s = max(self.min_interval, self.interval_seconds)
        while True:
            self._spawn_scan()
            await asyncio.sleep(sleep_s)

    def start(self) -> None:
        if self.running:
            return
        logger.info("calendar sync job started interval_s=%s", self.interval_seconds)
        self._ticker = asyncio.create_task(self._tick())

    async def stop(self) -> None:
        tasks = list(self._scans)
        if self._ticker is not None:
            tasks.append(self._ticker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._ticker = None
        self._scans.clear()
        logger.info("calendar sync job stopped")
