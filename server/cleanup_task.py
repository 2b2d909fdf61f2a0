"""Background task for expiring abandoned upload sessions."""

import asyncio
import logging
from typing import Optional

from common.constants import DEFAULT_SESSION_TTL_SECONDS, DEFAULT_SWEEP_INTERVAL_SECONDS
from server.services.chunked_upload_service import ChunkedUploadService

logger = logging.getLogger(__name__)


class ExpiredSessionSweeper:
    """
    Background task that periodically removes upload sessions nobody finished.

    A session expires once it has seen no chunk for max_age_seconds.
    """

    def __init__(
        self,
        service: ChunkedUploadService,
        interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS,
        max_age_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
    ):
        """
        Initialize sweeper task.

        Args:
            service: Upload service whose sessions are swept
            interval_seconds: Time between sweeps (default 1 hour)
            max_age_seconds: Idle time after which a session expires (default 24 hours)
        """
        self.service = service
        self.interval_seconds = interval_seconds
        self.max_age_seconds = max_age_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Session sweeper already running")
            return

        if self.max_age_seconds <= 0:
            logger.info("Session expiry disabled (TTL is 0)")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Started session sweeper (interval: {self.interval_seconds}s, ttl: {self.max_age_seconds}s)"
        )

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

        logger.info("Stopped session sweeper")

    async def _run(self) -> None:
        """Main loop for sweep task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                await self.sweep_once()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session sweeper: {e}", exc_info=True)

    async def sweep_once(self) -> int:
        """Execute one sweep cycle."""
        removed = await self.service.sweep_expired(self.max_age_seconds)
        if removed:
            logger.info(f"Sweep cycle complete: {removed} abandoned upload(s) removed")
        else:
            logger.debug("Sweep cycle complete: nothing expired")
        return removed
