"""Host bootstrap: wires the turnover components together and runs them."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker

from turnover import config, database
from turnover.dates import Clock, local_now
from turnover.debounce import Debouncer
from turnover.events import Event, EventBus, EventType
from turnover.models.booking import Booking
from turnover.modules.alerts import (
    APSchedulerNotifier,
    AlertSettings,
    CleaningAlertScheduler,
    Notifier,
    SchedulingReport,
)
from turnover.modules.calendar_sync import BookingAggregator, FeedParser
from turnover.modules.cleaning_status import BadgeCounter, CleaningStatusStore
from turnover.modules.gaps import TurnoverGapDetector
from turnover.modules.operations import OperationsManager
from turnover.modules.operations.ops import DEFAULT_CHECKOUT_DEADLINE
from turnover.modules.properties import PropertyRegistry
from turnover.scheduler import add_periodic_jobs, create_scheduler

logger = logging.getLogger(__name__)

RESCHEDULE_DEBOUNCE_SECONDS = 0.2


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or config.get_log_level(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    # Suppress per-request noise
    for noisy_logger in ("httpx", "httpcore", "apscheduler.executors.default"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


class TurnoverApp:
    """All core components plus the glue between them.

    Booking refreshes and alert setting changes trigger a debounced alert
    reschedule; refreshed bookings also re-run today's task seeding.
    """

    def __init__(
        self,
        *,
        bus: EventBus,
        registry: PropertyRegistry,
        aggregator: BookingAggregator,
        status_store: CleaningStatusStore,
        operations: OperationsManager,
        alert_scheduler: CleaningAlertScheduler,
        alert_settings: AlertSettings,
        badge: BadgeCounter,
        scheduler: AsyncIOScheduler,
        settings: dict[str, Any] | None = None,
        engine: Engine | None = None,
        refresh_interval_minutes: int = 15,
        cleanup_hour: int = 3,
        reschedule_debounce: float = RESCHEDULE_DEBOUNCE_SECONDS,
        clock: Clock = local_now,
    ) -> None:
        self.bus = bus
        self.registry = registry
        self.aggregator = aggregator
        self.status_store = status_store
        self.operations = operations
        self.alert_scheduler = alert_scheduler
        self.alert_settings = alert_settings
        self.badge = badge
        self.scheduler = scheduler
        self.gaps = TurnoverGapDetector(aggregator, status_store, clock=clock)
        self.settings = settings or {}
        self.refresh_interval_minutes = refresh_interval_minutes
        self.cleanup_hour = cleanup_hour
        self._engine = engine
        self._reschedule = Debouncer(reschedule_debounce, self.reschedule_alerts, name="alert-reschedule")

    @classmethod
    def from_config(
        cls,
        settings: dict[str, Any] | None = None,
        *,
        engine: Engine | None = None,
        notifier: Notifier | None = None,
        client: httpx.AsyncClient | None = None,
        bus: EventBus | None = None,
        clock: Clock = local_now,
    ) -> TurnoverApp:
        settings = config.settings if settings is None else settings
        calendar_cfg = config.section("calendar", settings)
        cleaning_cfg = config.section("cleaning", settings)
        sched_cfg = config.section("scheduler", settings)

        engine = engine or database.engine
        session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        bus = bus or EventBus()

        registry = PropertyRegistry(session_factory)
        aggregator = BookingAggregator(
            FeedParser(),
            client,
            ttl_seconds=float(calendar_cfg.get("cache_ttl_minutes", 15)) * 60,
            timeout=float(calendar_cfg.get("fetch_timeout", 30)),
            bus=bus,
        )
        store = CleaningStatusStore(
            session_factory,
            bus=bus,
            clock=clock,
            retention_days=int(cleaning_cfg.get("retention_days", 30)),
        )
        operations = OperationsManager(
            store,
            bus,
            clock=clock,
            checkout_deadline=config.parse_clock_time(
                cleaning_cfg.get("checkout_deadline"), DEFAULT_CHECKOUT_DEADLINE
            ),
        )
        alert_settings = AlertSettings.from_config(bus, config.section("alerts", settings))

        scheduler = create_scheduler()
        alert_scheduler = CleaningAlertScheduler(
            notifier or APSchedulerNotifier(scheduler),
            property_lookup=registry.get,
            bus=bus,
            clock=clock,
            sound_enabled=alert_settings.sound_enabled,
        )
        badge = BadgeCounter(
            store, bus, debounce_seconds=float(cleaning_cfg.get("badge_debounce_ms", 150)) / 1000
        )

        return cls(
            bus=bus,
            registry=registry,
            aggregator=aggregator,
            status_store=store,
            operations=operations,
            alert_scheduler=alert_scheduler,
            alert_settings=alert_settings,
            badge=badge,
            scheduler=scheduler,
            settings=settings,
            engine=engine,
            refresh_interval_minutes=int(calendar_cfg.get("refresh_interval_minutes", 15)),
            cleanup_hour=int(sched_cfg.get("cleanup_hour", 3)),
            clock=clock,
        )

    def setup_event_handlers(self) -> None:
        self.badge.setup_event_handlers()
        self.operations.setup_event_handlers()
        self.bus.subscribe(EventType.BOOKINGS_REFRESHED, self._on_reschedule_trigger)
        self.bus.subscribe(EventType.ALERT_SETTINGS_CHANGED, self._on_reschedule_trigger)

    def _on_reschedule_trigger(self, event: Event) -> None:
        self._reschedule.trigger()

    async def start(self, *, run_scheduler: bool = True) -> None:
        """Load state, rebuild today's tasks and alerts, then start periodic jobs."""
        logger.info("Starting turnover...")
        if self._engine is not None:
            database.init_db(self._engine)
        self.registry.load()
        self.registry.seed_from_config(self.settings)
        self.status_store.load()

        await self.status_store.cleanup_old()
        bookings = await self.refresh(force=True)
        created = await self.operations.start_of_day(bookings)
        logger.info("Startup created %d cleaning tasks", len(created))
        await self.reschedule_alerts()
        self.badge.recount()

        self.setup_event_handlers()
        if run_scheduler:
            add_periodic_jobs(self.scheduler, self)
            self.scheduler.start()
            logger.info("Scheduler started.")

    async def refresh(self, force: bool = False) -> list[Booking]:
        """Bookings for every registered property."""
        return await self.aggregator.get_all_bookings(self.registry.all(), force_refresh=force)

    async def reschedule_alerts(self) -> SchedulingReport:
        self.alert_scheduler.sound_enabled = self.alert_settings.sound_enabled
        return await self.alert_scheduler.schedule_cleaning_alerts(
            self.aggregator.all_cached(),
            self.alert_settings.alert_time,
            self.alert_settings.enabled,
        )

    async def seed_todays_tasks(self) -> None:
        bookings = await self.refresh()
        await self.operations.auto_create_cleaning_tasks(bookings)

    async def wait_idle(self) -> None:
        """Wait for pending debounced work and background task passes."""
        await self._reschedule.wait()
        await self.badge.wait()
        await self.operations.wait_idle()

    async def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self._reschedule.cancel()
        self.badge.teardown()
        await self.operations.wait_idle()
        await self.status_store.flush()
        self.status_store.close()
        await self.aggregator.aclose()
        logger.info("Turnover shut down.")


@asynccontextmanager
async def lifespan(app: TurnoverApp | None = None) -> AsyncIterator[TurnoverApp]:
    """Startup and shutdown around a host application's lifetime."""
    setup_logging()
    app = app or TurnoverApp.from_config()
    await app.start()
    try:
        yield app
    finally:
        await app.shutdown()
