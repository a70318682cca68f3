"""
Background Job Scheduler.

WHAT: Configures and manages APScheduler for background tasks.

WHY: Some clinic housekeeping has to happen without a request:
1. Recording appointment reminders ahead of the visit
2. Marking expired implant materials so they are not used

HOW: Uses APScheduler with AsyncIOScheduler for async job support and an
in-memory job store. Jobs are idempotent, so losing the schedule on a
restart only delays the next run.

Example:
    # In main.py lifespan:
    from app.services.scheduler import start_scheduler, shutdown_scheduler

    await start_scheduler()
    ...
    await shutdown_scheduler()
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.services.appointment_reminder_service import (
    get_reminder_service,
    REMINDER_CHECK_INTERVAL_SECONDS,
)
from app.services.inventory_status_service import (
    get_inventory_status_service,
    INVENTORY_STATUS_INTERVAL_SECONDS,
)


logger = logging.getLogger(__name__)


# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None


def get_scheduler() -> Optional[AsyncIOScheduler]:
    """Get the global scheduler instance."""
    return _scheduler


async def start_scheduler() -> None:
    """
    Start the background job scheduler.

    HOW:
    1. Creates AsyncIOScheduler with memory job store
    2. Registers the reminder and inventory status jobs
    3. Starts the scheduler
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running")
        return

    _scheduler = AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults={
            "coalesce": True,  # Combine multiple missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
        timezone=settings.TIMEZONE,
    )

    _register_reminder_job()
    _register_inventory_status_job()

    _scheduler.start()
    logger.info(
        f"Scheduler started with reminders every {REMINDER_CHECK_INTERVAL_SECONDS} seconds "
        f"and inventory refresh every {INVENTORY_STATUS_INTERVAL_SECONDS} seconds"
    )


def _register_reminder_job() -> None:
    if _scheduler is None:
        logger.error("Cannot register job: scheduler not initialized")
        return

    _scheduler.add_job(
        func=get_reminder_service().send_due_reminders,
        trigger=IntervalTrigger(seconds=REMINDER_CHECK_INTERVAL_SECONDS),
        id="appointment_reminders",
        name="Appointment Reminders",
        replace_existing=True,
    )
    logger.info(f"Registered appointment reminder job (interval: {REMINDER_CHECK_INTERVAL_SECONDS}s)")


def _register_inventory_status_job() -> None:
    if _scheduler is None:
        logger.error("Cannot register job: scheduler not initialized")
        return

    _scheduler.add_job(
        func=get_inventory_status_service().refresh_statuses,
        trigger=IntervalTrigger(seconds=INVENTORY_STATUS_INTERVAL_SECONDS),
        id="inventory_status_refresh",
        name="Inventory Status Refresh",
        replace_existing=True,
    )
    logger.info(f"Registered inventory status job (interval: {INVENTORY_STATUS_INTERVAL_SECONDS}s)")


async def shutdown_scheduler() -> None:
    """
    Shut down the background job scheduler.

    WHY: Ensures running jobs complete and resources are released.
    """
    global _scheduler

    if _scheduler is None:
        logger.info("Scheduler not running")
        return

    if not _scheduler.running:
        logger.info("Scheduler already stopped")
        return

    logger.info("Shutting down scheduler...")
    _scheduler.shutdown(wait=True)
    _scheduler = None
    logger.info("Scheduler shut down successfully")


async def run_reminders_now() -> dict:
    """Run the reminder job immediately, outside the schedule."""
    return await get_reminder_service().send_due_reminders()


async def run_inventory_refresh_now() -> dict:
    """Run the inventory status job immediately, outside the schedule."""
    return await get_inventory_status_service().refresh_statuses()


def get_scheduler_status() -> dict:
    """
    Get scheduler status information.

    Returns:
        Dict with scheduler status and job details
    """
    if _scheduler is None:
        return {
            "running": False,
            "jobs": [],
            "message": "Scheduler not initialized",
        }

    jobs = []
    for job in _scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run_time": str(job.next_run_time) if job.next_run_time else None,
            "trigger": str(job.trigger),
        })

    return {
        "running": _scheduler.running,
        "jobs": jobs,
        "message": "Scheduler is running" if _scheduler.running else "Scheduler is paused",
    }
