"""Background task for purging expired sessions."""

import asyncio
import logging

from relay.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)


class ExpiredSessionCleaner:
    """
    Background task that periodically deletes expired session records.

    Expired sessions are already invisible to lookups and admission; this
    only reclaims storage.
    """

    def __init__(self, repository: SessionRepository, interval_seconds: int):
        """
        Initialize cleaner task.

        Args:
            repository: Session repository to purge
            interval_seconds: Time between purge cycles
        """
        self.repository = repository
        self.interval_seconds = interval_seconds
        self._running = False
        self._task = None

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Cleanup task already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started expired session cleanup task (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info("Stopped expired session cleanup task")

    async def _run(self) -> None:
        """Main loop for cleanup task."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)

                if not self._running:
                    break

                self.cleanup_cycle()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in cleanup task: {e}", exc_info=True)

    def cleanup_cycle(self) -> int:
        """Execute one purge cycle and return the number of sessions removed."""
        removed = self.repository.purge_expired()
        if removed:
            logger.info(f"Purged {removed} expired session(s)")
        else:
            logger.debug("No expired sessions to purge")
        return removed
