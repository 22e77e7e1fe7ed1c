"""Token cleanup service - periodically removes expired token records."""

import asyncio
import threading
from typing import Optional

from app.core import async_session_maker, settings
from app.core.logging import get_logger, session_event
from app.services.session_manager import SessionManager
from app.services.token_codec import TokenConfig
from app.services.token_store import TokenRecordStore

logger = get_logger("token_cleanup")

# Delay before the first sweep so startup traffic is not competing with it
INITIAL_DELAY_SECONDS = 60

DEFAULT_INTERVAL_SECONDS = 3600  # 1 hour


class TokenCleanupService:
    """Background sweep of expired token records.

    Removing an expired record never changes an authorization outcome
    (the signature check already rejects the token), so the sweep runs
    alongside live traffic without coordination.
    """

    _instance: Optional["TokenCleanupService"] = None
    _instance_lock: threading.Lock = threading.Lock()
    _task: asyncio.Task | None = None

    def __init__(self, interval_seconds: int = DEFAULT_INTERVAL_SECONDS):
        self._running = False
        self._interval_seconds = interval_seconds

    @classmethod
    def get_instance(cls) -> "TokenCleanupService":
        """Get singleton instance of the cleanup service (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def interval_seconds(self) -> int:
        return self._interval_seconds

    @interval_seconds.setter
    def interval_seconds(self, value: int) -> None:
        """Set the sweep interval (minimum 1 second)."""
        self._interval_seconds = max(1, value)
        logger.info(f"Token cleanup interval set to {self._interval_seconds}s")

    async def start(self):
        """Start the background cleanup task."""
        if self._running:
            logger.warning("Token cleanup service is already running")
            return

        self._running = True
        TokenCleanupService._task = asyncio.create_task(self._cleanup_loop())
        logger.info(f"Token cleanup service started (interval: {self._interval_seconds}s)")

    async def stop(self):
        """Stop the background cleanup task."""
        self._running = False
        if TokenCleanupService._task:
            TokenCleanupService._task.cancel()
            try:
                await TokenCleanupService._task
            except asyncio.CancelledError:
                pass
            TokenCleanupService._task = None
        logger.info("Token cleanup service stopped")

    async def _cleanup_loop(self):
        """Main loop that periodically removes expired records."""
        await asyncio.sleep(INITIAL_DELAY_SECONDS)

        while self._running:
            try:
                await self.run_cleanup_now()
            except Exception as e:
                logger.error(
                    f"Error in token cleanup: {e}",
                    extra=session_event("token_sweep_failed"),
                )

            await asyncio.sleep(self._interval_seconds)

    async def run_cleanup_now(self) -> int:
        """Run one sweep immediately.

        Returns:
            Number of token records deleted
        """
        async with async_session_maker() as db:
            manager = SessionManager(TokenConfig.from_settings(settings), TokenRecordStore(db))
            return await manager.cleanup_expired_tokens()
