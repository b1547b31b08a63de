from turnover.modules.alerts.notifier import AlertContent, APSchedulerNotifier, Notifier
from turnover.modules.alerts.scheduler import (
    ALERT_PREFIX,
    CleaningAlertScheduler,
    PlannedAlert,
    SchedulingReport,
    alert_identifier,
)
from turnover.modules.alerts.settings import AlertSettings

__all__ = [
    "ALERT_PREFIX",
    "APSchedulerNotifier",
    "AlertContent",
    "AlertSettings",
    "CleaningAlertScheduler",
    "Notifier",
    "PlannedAlert",
    "SchedulingReport",
    "alert_identifier",
]
