"""Pure calculation functions: holiday calendar and weekly bucketing."""

from peopleflow.calculators.bucketizer import bucketize, iso_week_key, week_start_of
from peopleflow.calculators.holidays import (
    Holiday,
    easter_sunday,
    holidays_of,
    is_holiday,
    is_working_day,
    working_days_between,
    working_days_in_month,
)
from peopleflow.calculators.types import (
    Contract,
    EntrySpan,
    OvertimeSnapshot,
    WeeklyBucket,
    status_of,
)

__all__ = [
    "Contract",
    "EntrySpan",
    "Holiday",
    "OvertimeSnapshot",
    "WeeklyBucket",
    "bucketize",
    "easter_sunday",
    "holidays_of",
    "is_holiday",
    "is_working_day",
    "iso_week_key",
    "status_of",
    "week_start_of",
    "working_days_between",
    "working_days_in_month",
]
