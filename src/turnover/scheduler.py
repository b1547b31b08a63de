"""APScheduler setup for periodic tasks."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from turnover.app import TurnoverApp

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    """Bare scheduler; alert jobs are added to it by the notifier."""
    return AsyncIOScheduler()


def add_periodic_jobs(scheduler: AsyncIOScheduler, app: TurnoverApp) -> None:
    """Register the recurring refresh, retention and task-seeding jobs."""
    # Booking refresh (every 15 min by default)
    scheduler.add_job(
        app.refresh,
        "interval",
        minutes=app.refresh_interval_minutes,
        kwargs={"force": True},
        id="booking_refresh",
        name="Booking Refresh",
        replace_existing=True,
    )

    # Retention sweep (daily, early morning)
    scheduler.add_job(
        app.status_store.cleanup_old,
        "cron",
        hour=app.cleanup_hour,
        minute=0,
        id="status_cleanup",
        name="Cleaning Status Cleanup",
        replace_existing=True,
    )

    # Task seeding right after the checkout deadline
    deadline = app.operations.checkout_deadline
    run_at = (datetime.combine(date.today(), deadline) + timedelta(minutes=1)).time()
    scheduler.add_job(
        app.seed_todays_tasks,
        "cron",
        hour=run_at.hour,
        minute=run_at.minute,
        id="auto_tasks",
        name="Cleaning Task Seeding",
        replace_existing=True,
    )

    logger.info("Scheduler configured with %d jobs", len(scheduler.get_jobs()))
