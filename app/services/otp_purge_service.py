import asyncio
import logging

from app.config import settings
from app.database import SessionLocal
from app.services.otp_service import purge_expired_otps

logger = logging.getLogger(__name__)


class OtpPurgeScheduler:
    """Background task that periodically deletes expired OTP rows.

    Matching never depends on this sweep; expired codes are rejected on lookup.
    """

    def __init__(self, interval_minutes: int, enabled: bool = True):
        self.interval_seconds = max(interval_minutes, 1) * 60
        self.enabled = enabled
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        if not self.enabled:
            logger.info("Automatic OTP purge disabled by configuration.")
            return
        if self._task and not self._task.done():
            return
        logger.info("Starting OTP purge every %s minutes", self.interval_seconds / 60)
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop_event.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await asyncio.to_thread(self.purge_once)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    @staticmethod
    def purge_once() -> int:
        session = SessionLocal()
        try:
            removed = purge_expired_otps(session)
            if removed:
                logger.info("Purged %s expired OTP records", removed)
            return removed
        except Exception:
            logger.exception("Failed to purge expired OTP records")
            return 0
        finally:
            session.close()


otp_purge_scheduler = OtpPurgeScheduler(
    interval_minutes=settings.OTP_PURGE_INTERVAL_MINUTES,
    enabled=settings.OTP_PURGE_AUTO_ENABLED,
)
