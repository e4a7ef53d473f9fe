"""
Background inventory sync
Re-runs the Square sync on a fixed interval inside the application's event
loop. Started and stopped from the FastAPI lifespan.
"""
import asyncio
import logging
from typing import Optional

from profit_dashboard.schemas.inventory import BackgroundSyncStatus, SyncResult
from profit_dashboard.services.inventory_cache import InventoryCacheStore
from profit_dashboard.services.inventory_sync import InventorySyncService

logger = logging.getLogger(__name__)


class BackgroundSyncScheduler:
    """Periodic trigger for InventorySyncService.run_sync"""

    def __init__(
        self,
        sync_service: InventorySyncService,
        cache: InventoryCacheStore,
        interval_seconds: float = 30 * 60,
        startup_delay_seconds: float = 5,
        sync_if_empty: bool = True,
    ):
        self.sync_service = sync_service
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self.sync_if_empty = sync_if_empty
        self._task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_running(self) -> bool:
        return self.sync_service.is_running

    async def tick(self) -> Optional[SyncResult]:
        """
        Run one scheduled sync

        Returns:
            The SyncResult, or None if a sync was already in flight
        """
        if self.sync_service.is_running:
            logger.info("[BACKGROUND-SYNC] Sync already in progress, skipping...")
            return None

        logger.info("[BACKGROUND-SYNC] Starting scheduled sync...")
        try:
            result = await self.sync_service.run_sync()
        except Exception as e:
            logger.exception("[BACKGROUND-SYNC] Error: %s", e)
            return None

        if result.skipped:
            logger.info("[BACKGROUND-SYNC] Sync already in progress, skipping...")
            return None
        if result.success:
            logger.info("[BACKGROUND-SYNC] Synced %d items in %ss", result.item_count, result.duration)
        else:
            logger.error("[BACKGROUND-SYNC] Sync failed: %s", result.error)
        return result

    async def _run(self) -> None:
        if self.startup_delay_seconds > 0:
            await asyncio.sleep(self.startup_delay_seconds)

        status = self.cache.get_sync_status()
        if not status.is_cached and self.sync_if_empty:
            logger.info("[BACKGROUND-SYNC] No cache found, performing initial sync...")
            await self.tick()
        else:
            logger.info(
                "[BACKGROUND-SYNC] Cache exists (%d items, last sync: %s)",
                status.item_count,
                status.last_sync.isoformat() if status.last_sync else "never",
            )

        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.tick()

    def start(self) -> None:
        """Schedule the sync loop on the running event loop"""
        if self.enabled:
            logger.info("[BACKGROUND-SYNC] Already running")
            return

        self._task = asyncio.get_running_loop().create_task(self._run(), name="background-inventory-sync")
        logger.info("[BACKGROUND-SYNC] Started (interval: %s minutes)", round(self.interval_seconds / 60, 2))

    async def stop(self) -> None:
        """Cancel the sync loop and wait for it to finish"""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[BACKGROUND-SYNC] Stopped")

    def status(self) -> BackgroundSyncStatus:
        return BackgroundSyncStatus(
            enabled=self.enabled,
            is_running=self.is_running,
            interval_seconds=self.interval_seconds,
            **self.cache.get_sync_status().model_dump(),
        )
