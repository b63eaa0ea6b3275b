import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import get_settings
from services import SummaryCache


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, cache: SummaryCache) -> None:
        settings = get_settings()
        self.cache = cache
        self.refresh_minutes = settings.refresh_minutes
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _run_job(self, source: str = "manual") -> int:
        logger.info(f"summary_refresh: source={source}")
        count = self.cache.refresh_all()
        logger.info(f"summary_refresh: source={source} refreshed={count}")
        return count

    def start(self) -> None:
        trigger = IntervalTrigger(minutes=self.refresh_minutes)
        self.scheduler.add_job(
            self._run_job,
            trigger,
            args=["interval"],
            id="summary_refresh",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=60,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started, refreshing summaries every {self.refresh_minutes} min")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
