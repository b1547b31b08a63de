from turnover.modules.gaps.detector import (
    DayActivity,
    TurnoverGapDetector,
    day_activity,
    gap_checkout_date,
    is_cleaning_active,
)

__all__ = [
    "DayActivity",
    "TurnoverGapDetector",
    "day_activity",
    "gap_checkout_date",
    "is_cleaning_active",
]
