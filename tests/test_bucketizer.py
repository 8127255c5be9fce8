"""Tests for ISO week bucketization."""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from peopleflow.calculators import Contract, EntrySpan, bucketize, iso_week_key, week_start_of

CONTRACT = Contract(weekly_hours_target=Decimal("40"))


class TestWeekKeys:
    """Test ISO week helpers."""

    def test_sunday_belongs_to_preceding_monday(self):
        assert week_start_of(date(2025, 6, 15)) == date(2025, 6, 9)

    def test_year_boundary(self):
        assert iso_week_key(date(2024, 12, 30)) == (2025, 1)
        assert iso_week_key(date(2025, 1, 5)) == (2025, 1)
        assert iso_week_key(date(2024, 12, 29)) == (2024, 52)


class TestBucketize:
    """Test bucket arithmetic and ordering."""

    def test_entries_across_year_boundary_share_a_week(self):
        """Monday 2024-12-30 and Sunday 2025-01-05 are both in 2025-W01."""
        entries = [
            EntrySpan(date(2024, 12, 30), Decimal("8")),
            EntrySpan(date(2025, 1, 5), Decimal("4")),
        ]

        buckets = bucketize(entries, CONTRACT)

        assert len(buckets) == 1
        bucket = buckets[0]
        assert (bucket.iso_year, bucket.iso_week) == (2025, 1)
        assert bucket.label == "2025-W01"
        assert bucket.week_start == date(2024, 12, 30)
        assert bucket.days_worked == 2
        assert bucket.actual_hours == Decimal("12")

    def test_overtime_per_week(self):
        entries = [EntrySpan(date(2025, 6, 9) + timedelta(days=i), Decimal("8.5")) for i in range(5)]

        [bucket] = bucketize(entries, CONTRACT)

        assert bucket.actual_hours == Decimal("42.5")
        assert bucket.planned_hours == Decimal("40")
        assert bucket.overtime_hours == Decimal("2.5")
        assert bucket.days_worked == 5
        assert bucket.entry_count == 5

    def test_days_worked_counts_distinct_dates(self):
        entries = [
            EntrySpan(date(2025, 6, 10), Decimal("4")),
            EntrySpan(date(2025, 6, 10), Decimal("4")),
        ]

        [bucket] = bucketize(entries, CONTRACT)

        assert bucket.days_worked == 1
        assert bucket.entry_count == 2

    def test_empty_weeks_are_skipped_and_order_is_ascending(self):
        entries = [
            EntrySpan(date(2025, 3, 3), Decimal("1")),
            EntrySpan(date(2025, 1, 7), Decimal("1")),
        ]

        buckets = bucketize(entries, CONTRACT)

        assert [b.week_start for b in buckets] == [date(2025, 1, 6), date(2025, 3, 3)]

    def test_no_entries(self):
        assert bucketize([], CONTRACT) == []

    def test_week_end(self):
        [bucket] = bucketize([EntrySpan(date(2025, 6, 11), Decimal("1"))], CONTRACT)

        assert bucket.week_end.date() == date(2025, 6, 15)
        assert (bucket.week_end.hour, bucket.week_end.minute, bucket.week_end.second) == (23, 59, 59)

    def test_contract_sampled_at_week_start(self):
        """Test that a resolver decides the planned hours per week."""
        part_time = Contract(weekly_hours_target=Decimal("20"))
        entries = [
            EntrySpan(date(2025, 1, 8), Decimal("8")),
            EntrySpan(date(2025, 7, 9), Decimal("8")),
        ]

        buckets = bucketize(
            entries,
            CONTRACT,
            contract_at=lambda monday: part_time if monday >= date(2025, 7, 1) else CONTRACT,
        )

        assert [b.planned_hours for b in buckets] == [Decimal("40"), Decimal("20")]

    def test_working_hours_per_day(self):
        assert CONTRACT.working_hours_per_day == Decimal("8")
        assert Contract(Decimal("40"), working_days_per_week=0).working_hours_per_day == 0


entry_spans = st.builds(
    EntrySpan,
    work_date=st.dates(min_value=date(2020, 1, 1), max_value=date(2026, 12, 31)),
    duration_hours=st.decimals(
        min_value=Decimal("0"), max_value=Decimal("16"), places=2, allow_nan=False
    ),
)


class TestBucketizeProperties:
    """Property-based tests for bucketization."""

    @given(st.lists(entry_spans, max_size=60))
    @settings(max_examples=100)
    def test_partition_keeps_every_entry(self, entries):
        """No entry is lost or counted twice across buckets."""
        buckets = bucketize(entries, CONTRACT)

        assert sum(b.entry_count for b in buckets) == len(entries)
        assert sum((b.actual_hours for b in buckets), Decimal("0")) == sum(
            (e.duration_hours for e in entries), Decimal("0")
        )
        for bucket in buckets:
            assert bucket.overtime_hours == bucket.actual_hours - bucket.planned_hours
            assert bucket.week_start.weekday() == 0

    @given(st.lists(entry_spans, max_size=60))
    @settings(max_examples=50)
    def test_deterministic_and_sorted(self, entries):
        first = bucketize(entries, CONTRACT)
        second = bucketize(list(reversed(entries)), CONTRACT)

        assert first == second
        starts = [b.week_start for b in first]
        assert starts == sorted(starts)
        assert len(set(starts)) == len(starts)
