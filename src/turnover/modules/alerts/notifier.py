"""Notification delivery contract and an APScheduler-backed implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertContent:
    title: str
    body: str
    category: str = "CLEANING_ALERT"
    sound: bool = True
    badge: int = 1


class Notifier(Protocol):
    """What the alert scheduler needs from a notification backend."""

    async def schedule(self, identifier: str, content: AlertContent, trigger_at: datetime) -> bool:
        """Schedule (or replace) a notification; False if it was rejected."""
        ...

    async def cancel_by_prefix(self, prefix: str) -> int:
        """Cancel every pending notification whose identifier starts with ``prefix``."""
        ...

    async def pending_count(self, prefix: str) -> int:
        ...


Deliver = Callable[[str, AlertContent], None]


def log_delivery(identifier: str, content: AlertContent) -> None:
    logger.info("ALERT %s: %s - %s", identifier, content.title, content.body)


class APSchedulerNotifier:
    """Notifier keeping one date-triggered job per alert, keyed by identifier."""

    def __init__(self, scheduler: BaseScheduler, deliver: Deliver = log_delivery) -> None:
        self._scheduler = scheduler
        self._deliver = deliver

    async def schedule(self, identifier: str, content: AlertContent, trigger_at: datetime) -> bool:
        self._scheduler.add_job(
            self._deliver,
            "date",
            run_date=trigger_at,
            args=[identifier, content],
            id=identifier,
            name=content.title,
            replace_existing=True,
            misfire_grace_time=3600,
        )
        return True

    async def cancel_by_prefix(self, prefix: str) -> int:
        cancelled = 0
        for job in self._scheduler.get_jobs():
            if not job.id.startswith(prefix):
                continue
            try:
                self._scheduler.remove_job(job.id)
                cancelled += 1
            except JobLookupError:
                # Fired between listing and removal
                logger.debug("Alert job %s already gone", job.id)
        return cancelled

    async def pending_count(self, prefix: str) -> int:
        return sum(1 for job in self._scheduler.get_jobs() if job.id.startswith(prefix))
