"""
Periodic bug mapping sync on an APScheduler AsyncIOScheduler.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ci_health.config import get_settings
from ci_health.database import get_db_context


logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()

BUG_SYNC_JOB_ID = 'bug_mapping_sync'


def update_bugs_task():
    """Background task to update bug mappings."""
    from ci_health.services.bug_updater_service import BugUpdaterService

    settings = get_settings()

    try:
        with get_db_context() as db:
            service = BugUpdaterService(
                db=db,
                user=settings.BUG_DATA_USER,
                token=settings.BUG_DATA_TOKEN,
                bug_data_url=settings.BUG_DATA_URL,
                verify_ssl=settings.BUG_DATA_VERIFY_SSL
            )
            stats = service.update_bug_mappings()
            logger.info(f"Scheduled bug update completed: {stats}")
    except Exception as e:
        # Failure is already recorded in bug_sync_logs; keep the schedule running
        logger.error(f"Scheduled bug update failed: {e}", exc_info=True)


def start_scheduler():
    """
    Register the bug sync job and start the scheduler.

    This is called during FastAPI lifespan startup. The bug sync job is only
    registered when enabled and a bug data URL is configured.
    """
    settings = get_settings()

    if settings.BUG_SYNC_ENABLED and settings.BUG_DATA_URL:
        scheduler.add_job(
            update_bugs_task,
            trigger=IntervalTrigger(hours=settings.BUG_SYNC_INTERVAL_HOURS),
            id=BUG_SYNC_JOB_ID,
            name='Bug mapping sync',
            replace_existing=True,
            max_instances=1
        )
        logger.info(f"Bug sync scheduled every {settings.BUG_SYNC_INTERVAL_HOURS} hours")
    else:
        logger.info("Bug sync disabled")

    if not scheduler.running:
        scheduler.start()


def stop_scheduler():
    """Shut the scheduler down without waiting for running jobs."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
