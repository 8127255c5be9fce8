"""Tests for overtime recomputation."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from peopleflow.errors import NotFoundError
from peopleflow.models import EmployeeStatus, OvertimeStatus, WeeklySummary
from peopleflow.services.adjustment_service import AdjustmentLedger
from peopleflow.services.overtime_service import OvertimeEngine


@pytest.fixture
def engine_service(session, settings, locks) -> OvertimeEngine:
    return OvertimeEngine(session, settings, locks)


def work_week(make_entry, employee, monday: date, hours: str, days: int) -> None:
    for offset in range(days):
        make_entry(employee, monday + timedelta(days=offset), hours)


def approve(session, employee, hours: str) -> None:
    ledger = AdjustmentLedger(session)
    adjustment = ledger.submit(employee.employee_id, "manual", Decimal(hours), "balance fix")
    ledger.approve(adjustment.adjustment_id, "boss")


class TestRecompute:
    """Test the balance formula on a realistic month."""

    @pytest.fixture
    def scenario(self, session, make_entry, employee):
        """Week A: 5 x 8.5h, week B: 4 x 9h, adjustments +1.5 and -0.25."""
        work_week(make_entry, employee, date(2025, 6, 2), "8.5", 5)
        work_week(make_entry, employee, date(2025, 6, 16), "9", 4)
        approve(session, employee, "1.5")
        approve(session, employee, "-0.25")
        return employee

    def test_balance_formula(self, engine_service, scenario):
        snapshot = engine_service.recompute(scenario.employee_id)

        assert [b.overtime_hours for b in snapshot.buckets] == [Decimal("2.5"), Decimal("-4")]
        assert snapshot.base_balance == Decimal("-1.5")
        assert snapshot.adjustments_total == Decimal("1.25")
        assert snapshot.final_balance == Decimal("-0.25")
        assert snapshot.status is OvertimeStatus.NEGATIVE
        assert snapshot.total_actual_hours == Decimal("78.5")
        assert snapshot.total_planned_hours == Decimal("80")

    def test_writes_back_cache(self, session, engine_service, scenario):
        snapshot = engine_service.recompute(scenario.employee_id)

        assert scenario.overtime_balance == Decimal("-0.25")
        assert scenario.last_computed_at == snapshot.computed_at

        summaries = session.scalars(
            select(WeeklySummary)
            .where(WeeklySummary.employee_id == scenario.employee_id)
            .order_by(WeeklySummary.week_start)
        ).all()
        assert [(s.iso_week, s.days_worked) for s in summaries] == [(23, 5), (25, 4)]

    def test_idempotent(self, session, engine_service, scenario):
        first = engine_service.recompute(scenario.employee_id)
        second = engine_service.recompute(scenario.employee_id)

        assert first.final_balance == second.final_balance
        assert first.buckets == second.buckets
        assert len(session.scalars(select(WeeklySummary)).all()) == 2

    def test_pending_adjustments_do_not_count(self, session, engine_service, scenario):
        AdjustmentLedger(session).submit(scenario.employee_id, "bonus", 100, "pending")

        assert engine_service.snapshot(scenario.employee_id).final_balance == Decimal("-0.25")

    def test_snapshot_does_not_persist(self, engine_service, scenario):
        engine_service.snapshot(scenario.employee_id)

        assert scenario.last_computed_at is None

    def test_no_entries_is_neutral(self, engine_service, employee):
        snapshot = engine_service.recompute(employee.employee_id)

        assert snapshot.buckets == ()
        assert snapshot.final_balance == Decimal("0")
        assert snapshot.status is OvertimeStatus.NEUTRAL

    def test_missing_weekly_target_uses_default(self, engine_service, make_entry, make_employee):
        employee = make_employee(weekly_hours_target=None)
        make_entry(employee, date(2025, 6, 2), "8")

        snapshot = engine_service.snapshot(employee.employee_id)

        assert snapshot.final_balance == Decimal("-32")

    def test_unknown_employee(self, engine_service):
        with pytest.raises(NotFoundError):
            engine_service.recompute(uuid4())


class TestRecomputeAll:
    """Test the bulk recompute and statistics."""

    def test_skips_inactive(self, engine_service, make_entry, make_employee):
        active = make_employee(first_name="Anna")
        inactive = make_employee(first_name="Ingo", status=EmployeeStatus.INACTIVE.value)
        work_week(make_entry, active, date(2025, 6, 2), "9.6", 5)
        work_week(make_entry, inactive, date(2025, 6, 2), "9.6", 5)

        result = engine_service.recompute_all()

        assert result.success
        assert result.processed == 1
        assert active.overtime_balance == Decimal("8")
        assert inactive.last_computed_at is None

    def test_failure_does_not_abort_run(
        self, session, engine_service, make_entry, make_employee, monkeypatch
    ):
        anna = make_employee(first_name="Anna")
        bert = make_employee(first_name="Bert")
        carl = make_employee(first_name="Carl")
        work_week(make_entry, anna, date(2025, 6, 2), "9.6", 5)
        work_week(make_entry, bert, date(2025, 6, 2), "9.6", 5)
        work_week(make_entry, carl, date(2025, 6, 2), "8.8", 5)
        compute = engine_service._compute

        def failing_for_bert(employee):
            if employee.employee_id == bert.employee_id:
                raise RuntimeError("corrupt entry")
            return compute(employee)

        monkeypatch.setattr(engine_service, "_compute", failing_for_bert)

        result = engine_service.recompute_all()

        assert not result.success
        assert (result.processed, result.failed) == (2, 1)
        assert result.errors == [{"employee_id": str(bert.employee_id), "error": "corrupt entry"}]
        session.expire_all()
        assert anna.overtime_balance == Decimal("8")
        assert carl.overtime_balance == Decimal("4")
        assert bert.last_computed_at is None

    def test_statistics(self, engine_service, make_entry, make_employee):
        plus = make_employee(first_name="Paul")
        minus = make_employee(first_name="Mia")
        make_employee(first_name="Nina")
        work_week(make_entry, plus, date(2025, 6, 2), "8.8", 5)
        work_week(make_entry, minus, date(2025, 6, 2), "7.6", 5)
        engine_service.recompute_all()

        stats = engine_service.statistics()

        assert stats.employee_count == 3
        assert stats.total_balance == Decimal("2")
        assert (stats.positive_count, stats.negative_count, stats.neutral_count) == (1, 1, 1)
