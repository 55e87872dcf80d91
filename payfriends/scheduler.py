import atexit
import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

from .config import Config

logger = logging.getLogger(__name__)

REPORT_JOB_ID = "daily_payment_reports"


def start_report_scheduler(job: Callable[[], object], settings: Config) -> BackgroundScheduler:
    """Run ``job`` once a day at the configured local time."""
    scheduler = BackgroundScheduler(timezone=settings.REPORT_TIMEZONE)
    scheduler.add_job(
        func=job,
        trigger="cron",
        hour=settings.REPORT_CRON_HOUR,
        minute=settings.REPORT_CRON_MINUTE,
        id=REPORT_JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    atexit.register(lambda: scheduler.shutdown(wait=False))
    logger.info(
        "Scheduled report emails daily at %02d:%02d %s",
        settings.REPORT_CRON_HOUR,
        settings.REPORT_CRON_MINUTE,
        settings.REPORT_TIMEZONE,
    )
    return scheduler
