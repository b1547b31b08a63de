"""Tests for cleaning alert scheduling."""

import asyncio
from datetime import date, time

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from turnover.dates import at_time
from turnover.events import EventBus, EventType
from turnover.models.booking import Booking, Platform
from turnover.models.property import Property
from turnover.modules.alerts import (
    ALERT_PREFIX,
    AlertContent,
    AlertSettings,
    APSchedulerNotifier,
    CleaningAlertScheduler,
    alert_identifier,
)
from turnover.modules.alerts.scheduler import alert_content

from tests.fixtures.helpers import TODAY, FakeNotifier, FixedClock, day, make_booking

EIGHT = time(8, 0)

PROPERTIES = {
    "kawama-c2": Property(id="kawama-c2", name="kawama-c2", display_name="Kawama C-2", short_name="C-2"),
    "kawama-e5": Property(id="kawama-e5", name="kawama-e5", display_name="Kawama E-5", short_name="E-5"),
}

BOOKINGS = [
    make_booking("c2-out", day(-4), day(0)),
    make_booking("c2-in", day(0), day(2)),
    make_booking("e5-stay", day(-2), day(3), property_id="kawama-e5"),
    make_booking("c2-past", day(-11), day(-7)),
]

C2_TODAY = alert_identifier("kawama-c2", day(0))
C2_LATER = alert_identifier("kawama-c2", day(2))
E5 = alert_identifier("kawama-e5", day(3))


@pytest.fixture
def early_clock() -> FixedClock:
    return FixedClock(at_time(TODAY, time(7, 0)))


@pytest.fixture
def alert_scheduler(notifier, event_bus, early_clock) -> CleaningAlertScheduler:
    return CleaningAlertScheduler(
        notifier, property_lookup=PROPERTIES.get, bus=event_bus, clock=early_clock,
    )


def test_identifier_is_property_and_checkout_midnight():
    midnight = int(at_time(TODAY, time()).timestamp())
    assert alert_identifier("kawama-c2", TODAY) == f"cleaning_kawama-c2_{midnight}"
    assert alert_identifier("kawama-c2", TODAY).startswith(ALERT_PREFIX)


def test_alert_content_urgent_and_normal():
    urgent = alert_content("C-2", urgent=True)
    normal = alert_content("C-2", urgent=False, sound=False)

    assert "URGENT" in urgent.title
    assert urgent.body == "C-2 needs cleaning TODAY - checkout AND checkin scheduled!"
    assert normal.title != urgent.title
    assert normal.body == "C-2 checkout today - ready for cleaning"
    assert normal.sound is False
    assert normal.category == "CLEANING_ALERT"
    assert normal.badge == 1


@pytest.mark.asyncio
async def test_schedules_one_alert_per_checkout(alert_scheduler, notifier: FakeNotifier):
    report = await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    assert report.scheduled == 3
    assert set(notifier.pending) == {C2_TODAY, C2_LATER, E5}

    content, trigger_at = notifier.pending[C2_TODAY]
    assert "URGENT" in content.title
    assert "C-2" in content.body
    assert trigger_at == at_time(TODAY, EIGHT)

    content, _ = notifier.pending[E5]
    assert "URGENT" not in content.title
    assert "E-5" in content.body


@pytest.mark.asyncio
async def test_rescheduling_is_idempotent(alert_scheduler, notifier: FakeNotifier):
    await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)
    first = set(notifier.pending)

    report = await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    assert set(notifier.pending) == first
    assert report.cancelled == 3
    assert report.scheduled == 3
    assert await alert_scheduler.pending_alerts_count() == 3


@pytest.mark.asyncio
async def test_vanished_booking_loses_its_alert(alert_scheduler, notifier: FakeNotifier):
    await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)
    remaining = [b for b in BOOKINGS if b.id != "e5-stay"]

    await alert_scheduler.schedule_cleaning_alerts(remaining, EIGHT)

    assert set(notifier.pending) == {C2_TODAY, C2_LATER}


@pytest.mark.asyncio
async def test_past_trigger_is_skipped(alert_scheduler, notifier: FakeNotifier, early_clock):
    early_clock.advance(hours=2)

    report = await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    assert report.skipped_past == 1
    assert report.scheduled == 2
    assert C2_TODAY not in notifier.pending


@pytest.mark.asyncio
async def test_disabled_cancels_everything(alert_scheduler, notifier: FakeNotifier):
    await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    report = await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT, enabled=False)

    assert report.cancelled == 3
    assert report.scheduled == 0
    assert notifier.pending == {}


@pytest.mark.asyncio
async def test_notifier_failures_are_per_item(alert_scheduler, notifier: FakeNotifier):
    notifier.fail.add(C2_LATER)
    notifier.reject.add(E5)

    report = await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    assert report.failed == 2
    assert report.scheduled == 1
    assert set(notifier.pending) == {C2_TODAY}


@pytest.mark.asyncio
async def test_unknown_property_is_skipped(notifier: FakeNotifier, event_bus, early_clock):
    scheduler = CleaningAlertScheduler(
        notifier,
        property_lookup={"kawama-c2": PROPERTIES["kawama-c2"]}.get,
        bus=event_bus,
        clock=early_clock,
    )

    report = await scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    assert report.skipped_unknown == 1
    assert E5 not in notifier.pending


@pytest.mark.asyncio
async def test_without_lookup_label_is_property_id(notifier: FakeNotifier, early_clock):
    scheduler = CleaningAlertScheduler(notifier, clock=early_clock)

    await scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    content, _ = notifier.pending[E5]
    assert content.body.startswith("kawama-e5")


@pytest.mark.asyncio
async def test_queued_run_is_superseded(alert_scheduler, notifier: FakeNotifier):
    notifier.delay = 0.01
    fewer = [b for b in BOOKINGS if b.property_id == "kawama-e5"]

    first, second, third = await asyncio.gather(
        alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT),
        alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT),
        alert_scheduler.schedule_cleaning_alerts(fewer, EIGHT),
    )

    assert not first.superseded
    assert second.superseded
    assert not third.superseded
    # The newest request decides the final state
    assert set(notifier.pending) == {E5}


@pytest.mark.asyncio
async def test_run_publishes_event(alert_scheduler, event_bus: EventBus):
    received = []
    event_bus.subscribe(EventType.ALERTS_RESCHEDULED, received.append)

    await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)

    assert received[0].data["scheduled"] == 3


@pytest.mark.asyncio
async def test_cancel_all(alert_scheduler, notifier: FakeNotifier):
    await alert_scheduler.schedule_cleaning_alerts(BOOKINGS, EIGHT)
    assert await alert_scheduler.cancel_all_cleaning_alerts() == 3
    assert await alert_scheduler.pending_alerts_count() == 0


def test_plan_does_not_touch_notifier(alert_scheduler, notifier: FakeNotifier):
    plan = alert_scheduler.plan_alerts(BOOKINGS, EIGHT)

    assert [(p.property_id, p.checkout_date, p.urgent) for p in plan] == [
        ("kawama-c2", day(0), True),
        ("kawama-c2", day(2), False),
        ("kawama-e5", day(3), False),
    ]
    assert plan[0].booking_ids == ("c2-out",)
    assert notifier.schedule_calls == 0


def test_same_day_stay_is_not_its_own_turnover(alert_scheduler):
    short_stay = Booking(
        id="day-use",
        start=at_time(TODAY, time(9, 0)),
        end=at_time(TODAY, time(15, 0)),
        platform=Platform.AIRBNB,
        property_id="kawama-c2",
    )

    plan = alert_scheduler.plan_alerts([short_stay], EIGHT)

    assert [(p.checkout_date, p.urgent) for p in plan] == [(TODAY, False)]


@pytest.mark.asyncio
async def test_apscheduler_notifier_manages_prefixed_jobs():
    scheduler = BackgroundScheduler()
    scheduler.add_job(print, "interval", minutes=15, id="booking_refresh")
    notifier = APSchedulerNotifier(scheduler)
    content = AlertContent(title="Cleaning Day", body="C-2 checkout today")

    assert await notifier.schedule(C2_TODAY, content, at_time(date(2030, 1, 1), EIGHT))
    assert await notifier.schedule(E5, content, at_time(date(2030, 1, 2), EIGHT))
    assert await notifier.pending_count(ALERT_PREFIX) == 2

    assert await notifier.cancel_by_prefix(ALERT_PREFIX) == 2
    assert await notifier.pending_count(ALERT_PREFIX) == 0
    assert [job.id for job in scheduler.get_jobs()] == ["booking_refresh"]


def test_settings_update_publishes_changes():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.ALERT_SETTINGS_CHANGED, received.append)
    settings = AlertSettings(bus)

    changed = settings.update(alert_time="07:30", enabled=True)

    assert changed == {"alert_time": time(7, 30)}
    assert settings.alert_time == time(7, 30)
    assert received[0].data["changed"] == {"alert_time": time(7, 30)}

    assert settings.update(alert_time="07:30") == {}
    assert len(received) == 1


def test_settings_reject_unknown_fields():
    settings = AlertSettings(EventBus())
    with pytest.raises(TypeError):
        settings.update(volume=11)


def test_settings_from_config():
    settings = AlertSettings.from_config(
        EventBus(), {"enabled": False, "alert_time": "06:15", "sound_enabled": False},
    )
    assert settings.enabled is False
    assert settings.alert_time == time(6, 15)
    assert settings.sound_enabled is False
    assert settings.new_booking_alerts_enabled is True


def test_new_booking_preference_is_stored_only():
    settings = AlertSettings(EventBus())

    assert settings.update(new_booking_alerts_enabled=False) == {"new_booking_alerts_enabled": False}
    assert settings.new_booking_alerts_enabled is False
    assert settings.enabled is True
