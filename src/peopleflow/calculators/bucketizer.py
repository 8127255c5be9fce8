"""Partition time entries into ISO week buckets.

Pure and deterministic: the same entries and contract always produce the
same buckets, ordered by week start, with empty weeks omitted.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Iterable

from peopleflow.calculators.types import ZERO, Contract, HoursEntry, WeeklyBucket, to_decimal

ContractResolver = Callable[[date], Contract]


def week_start_of(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def iso_week_key(day: date) -> tuple[int, int]:
    """``(iso_year, iso_week)`` of ``day``."""
    iso_year, iso_week, _ = week_start_of(day).isocalendar()
    return iso_year, iso_week


def bucketize(
    entries: Iterable[HoursEntry],
    contract: Contract,
    contract_at: ContractResolver | None = None,
) -> list[WeeklyBucket]:
    """Group entries by ISO week and compare against the planned hours.

    Args:
        entries: Entries with ``work_date`` and ``duration_hours``.
        contract: Contract used for every week unless ``contract_at`` is given.
        contract_at: Optional resolver sampling the contract valid at a
            week's Monday.

    Returns:
        Buckets sorted ascending by ``week_start``.
    """
    actual: dict[date, Decimal] = {}
    days: dict[date, set[date]] = {}
    counts: dict[date, int] = {}

    for entry in entries:
        work_day = entry.work_date
        if isinstance(work_day, datetime):
            work_day = work_day.date()
        start = week_start_of(work_day)
        actual[start] = actual.get(start, ZERO) + to_decimal(entry.duration_hours)
        days.setdefault(start, set()).add(work_day)
        counts[start] = counts.get(start, 0) + 1

    buckets: list[WeeklyBucket] = []
    for start in sorted(actual):
        sampled = contract_at(start) if contract_at is not None else contract
        iso_year, iso_week, _ = start.isocalendar()
        buckets.append(
            WeeklyBucket(
                iso_year=iso_year,
                iso_week=iso_week,
                week_start=start,
                planned_hours=to_decimal(sampled.weekly_hours_target),
                actual_hours=actual[start],
                days_worked=len(days[start]),
                entry_count=counts[start],
            )
        )
    return buckets
