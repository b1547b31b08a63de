from turnover.modules.cleaning_status.badge import BadgeCounter
from turnover.modules.cleaning_status.store import CleaningStatusStore

__all__ = ["BadgeCounter", "CleaningStatusStore"]
