"""Type definitions for the overtime calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol
from uuid import UUID

from peopleflow.models.enums import OvertimeStatus

ZERO = Decimal("0")
HOURS_QUANTUM = Decimal("0.0001")


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    """Convert a numeric value to Decimal without float artifacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def span_hours(start_at: datetime, end_at: datetime) -> Decimal:
    """Length of ``[start_at, end_at)`` in hours, to four decimals."""
    seconds = Decimal(int((end_at - start_at).total_seconds()))
    return (seconds / Decimal(3600)).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


class HoursEntry(Protocol):
    """Anything with a calendar day and a duration, e.g. a TimeEntry row."""

    @property
    def work_date(self) -> date: ...

    @property
    def duration_hours(self) -> Decimal: ...


@dataclass(frozen=True)
class EntrySpan:
    """Plain hours entry used outside the ORM (tests, previews)."""

    work_date: date
    duration_hours: Decimal


@dataclass(frozen=True)
class Contract:
    """Contract values sampled for one employee."""

    weekly_hours_target: Decimal
    working_days_per_week: int = 5

    @property
    def working_hours_per_day(self) -> Decimal:
        if self.working_days_per_week <= 0:
            return ZERO
        return self.weekly_hours_target / self.working_days_per_week


@dataclass(frozen=True)
class WeeklyBucket:
    """Actual vs. planned hours for one ISO week."""

    iso_year: int
    iso_week: int
    week_start: date
    planned_hours: Decimal
    actual_hours: Decimal
    days_worked: int
    entry_count: int = 0

    @property
    def overtime_hours(self) -> Decimal:
        return self.actual_hours - self.planned_hours

    @property
    def week_end(self) -> datetime:
        """Sunday 23:59:59 of the week."""
        return datetime.combine(self.week_start + timedelta(days=6), time(23, 59, 59))

    @property
    def label(self) -> str:
        return f"{self.iso_year}-W{self.iso_week:02d}"


def status_of(balance: Decimal) -> OvertimeStatus:
    """Classify a balance by sign."""
    if balance > 0:
        return OvertimeStatus.POSITIVE
    if balance < 0:
        return OvertimeStatus.NEGATIVE
    return OvertimeStatus.NEUTRAL


@dataclass(frozen=True)
class OvertimeSnapshot:
    """Result of one overtime recomputation."""

    employee_id: UUID
    buckets: tuple[WeeklyBucket, ...]
    base_balance: Decimal
    adjustments_total: Decimal
    final_balance: Decimal
    computed_at: datetime

    @property
    def status(self) -> OvertimeStatus:
        return status_of(self.final_balance)

    @property
    def total_actual_hours(self) -> Decimal:
        return sum((b.actual_hours for b in self.buckets), ZERO)

    @property
    def total_planned_hours(self) -> Decimal:
        return sum((b.planned_hours for b in self.buckets), ZERO)
