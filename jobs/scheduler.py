import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from jobs.alerts import run_alert_checks
from jobs.evaluation import evaluate_forecasts
from jobs.warmup import warmup_forecasts

logger = logging.getLogger(__name__)


class JobScheduler:
    """Runs the warmup, alert and evaluation jobs on the app's event loop."""

    def __init__(self):
        self.scheduler = AsyncIOScheduler()

    async def run_warmup_job(self):
        logger.info("Scheduler: Starting forecast warmup job")
        try:
            result = await warmup_forecasts()
            logger.info(f"Scheduler: Warmup finished - {result}")
        except Exception as e:
            logger.error(f"Scheduler: Warmup job failed - {e}")

    async def run_alert_job(self):
        logger.info("Scheduler: Starting alert check job")
        try:
            result = await run_alert_checks()
            logger.info(f"Scheduler: Alert checks finished - {result}")
        except Exception as e:
            logger.error(f"Scheduler: Alert check job failed - {e}")

    async def run_evaluation_job(self):
        logger.info("Scheduler: Starting forecast evaluation job")
        try:
            result = await evaluate_forecasts()
            logger.info(f"Scheduler: Evaluation finished - {result}")
        except Exception as e:
            logger.error(f"Scheduler: Evaluation job failed - {e}")

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_warmup_job,
            trigger=IntervalTrigger(minutes=settings.WARMUP_INTERVAL_MINUTES),
            id="forecast_warmup",
            replace_existing=True
        )
        self.scheduler.add_job(
            self.run_alert_job,
            trigger=IntervalTrigger(minutes=settings.ALERT_CHECK_INTERVAL_MINUTES),
            id="alert_checks",
            replace_existing=True
        )
        self.scheduler.add_job(
            self.run_evaluation_job,
            trigger=IntervalTrigger(hours=settings.EVALUATION_INTERVAL_HOURS),
            id="forecast_evaluation",
            replace_existing=True
        )
        self.scheduler.start()
        logger.info("Job scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Job scheduler stopped")
