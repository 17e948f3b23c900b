import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from nownext.exceptions import ScheduleError
from nownext.services.schedule_cache_service import ScheduleCache


logger = logging.getLogger(__name__)

class ScheduleRefresher:
    """Scheduler that keeps a ScheduleCache warm"""

    def __init__(self, cache: ScheduleCache, cron: str, misfire_grace_sec: int = 300):
        self.cache = cache
        self.cron = cron
        self.misfire_grace_sec = misfire_grace_sec
        self.scheduler: AsyncIOScheduler | None = None

    async def _refresh_job(self) -> None:
        """Background job; refetches even when the cached entry is still fresh"""
        logger.info("Scheduled EPG refresh triggered")
        try:
            await self.cache.refresh()
        except ScheduleError as e:
            logger.error(f"Scheduled refresh failed: {e}")
        except Exception as e:
            logger.error(f"Exception in scheduled refresh: {e}", exc_info=True)

    def start(self) -> None:
        """Start the scheduler with the refresh job"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        if not self.cron:
            logger.info("EPG refresh schedule disabled")
            return

        try:
            trigger = CronTrigger.from_crontab(self.cron)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", self.cron, exc)
            raise

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._refresh_job,
            trigger=trigger,
            id='epg_refresh',
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.misfire_grace_sec
        )

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next refresh: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
        self.scheduler = None

    def get_next_run_time(self) -> datetime | None:
        """Get next scheduled refresh time"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job('epg_refresh')
        return job.next_run_time if job else None
