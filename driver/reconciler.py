"""Background task for purging segments whose location no file record references."""

import asyncio
from typing import Optional, Set

from common.logging_config import get_logger
from driver.paths import location_prefix
from driver.storage_driver import StorageDriver

logger = get_logger(__name__)


class OrphanSegmentReconciler:
    """
    Finds segment rows (and their objects) left behind by cancelled uploads,
    deleted files and losing concurrent writers.

    An unreferenced location is only purged once it was also unreferenced in
    the previous sweep, so uploads that are still in progress survive as
    long as they commit within one interval. Driver operations never call
    this; it runs only when enabled.
    """

    def __init__(self, driver: StorageDriver, interval_seconds: int):
        """
        Initialize reconciler.

        Args:
            driver: Driver whose database and object store are swept
            interval_seconds: Time between sweeps
        """
        self.driver = driver
        self.interval_seconds = interval_seconds
        self._suspects: Set[str] = set()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def sweep(self) -> int:
        """
        Execute one sweep.

        Returns:
            Number of locations purged
        """
        referenced = set(self.driver.file_repo.referenced_locations())
        orphaned = set(self.driver.segment_repo.list_locations()) - referenced

        confirmed = orphaned & self._suspects
        self._suspects = orphaned - confirmed

        purged = 0
        prefix = self.driver.object_store.object_prefix
        for location in sorted(confirmed):
            try:
                self.driver.object_store.delete_all(location_prefix(prefix, location))
                self.driver.segment_repo.delete_segments(location)
                purged += 1
                logger.info(f"Purged orphaned segments [location={location}]")
            except Exception as e:
                logger.warning(f"Failed to purge orphaned segments [location={location}]: {e}")
                self._suspects.add(location)

        if orphaned:
            logger.info(f"Sweep complete: {purged} purged, {len(self._suspects)} suspected")
        return purged

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Reconciler already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started orphaned segment reconciler (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Stopped orphaned segment reconciler")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await asyncio.to_thread(self.sweep)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in reconciler task: {e}", exc_info=True)
