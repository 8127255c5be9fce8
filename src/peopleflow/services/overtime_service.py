"""Overtime engine: weekly breakdown and balance per employee.

The balance is always recomputed from scratch:

    base_balance       = sum of weekly (actual - planned)
    adjustments_total  = sum of approved adjustments
    final_balance      = base_balance + adjustments_total

Only the cached balance, ``last_computed_at`` and the weekly summary cache
are written back to the employee.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.calculators.bucketizer import bucketize
from peopleflow.calculators.types import ZERO, Contract, OvertimeSnapshot, status_of, to_decimal
from peopleflow.config import Settings, get_settings
from peopleflow.errors import NotFoundError
from peopleflow.models import Employee, EmployeeStatus, OvertimeStatus, TimeEntry, WeeklySummary
from peopleflow.services.activity_service import ActivityService, ActivityType
from peopleflow.services.adjustment_service import AdjustmentLedger
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks

logger = logging.getLogger(__name__)


@dataclass
class RecomputeAllResult:
    """Result of recomputing every employee."""

    processed: int = 0
    failed: int = 0
    snapshots: list[OvertimeSnapshot] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every employee was recomputed."""
        return self.failed == 0


@dataclass(frozen=True)
class OvertimeStatistics:
    """Aggregate of cached balances over active employees."""

    employee_count: int
    total_balance: Decimal
    average_balance: Decimal
    positive_count: int
    negative_count: int
    neutral_count: int


class OvertimeEngine:
    """Recomputes overtime balances from time entries and adjustments."""

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        locks: EmployeeLockRegistry | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.locks = locks or employee_locks
        self.ledger = AdjustmentLedger(session)

    def contract_for(self, employee: Employee) -> Contract:
        """Current contract; historical contracts are not retained."""
        weekly = employee.weekly_hours_target
        if weekly is None:
            weekly = self.settings.default_weekly_hours
        return Contract(
            weekly_hours_target=to_decimal(weekly),
            working_days_per_week=employee.working_days_per_week or 0,
        )

    def snapshot(self, employee_id: UUID) -> OvertimeSnapshot:
        """Compute without persisting anything."""
        employee = self._require_employee(employee_id)
        with self.locks.hold(employee_id):
            return self._compute(employee)

    def recompute(self, employee_id: UUID) -> OvertimeSnapshot:
        """Recompute and write back the cached balance and weekly summaries."""
        employee = self._require_employee(employee_id)
        with self.locks.hold(employee_id):
            snapshot = self._compute(employee)
            employee.overtime_balance = snapshot.final_balance
            employee.last_computed_at = snapshot.computed_at
            employee.weekly_summaries = [
                WeeklySummary(
                    employee_id=employee_id,
                    iso_year=bucket.iso_year,
                    iso_week=bucket.iso_week,
                    week_start=bucket.week_start,
                    planned_hours=bucket.planned_hours,
                    actual_hours=bucket.actual_hours,
                    overtime_hours=bucket.overtime_hours,
                    days_worked=bucket.days_worked,
                )
                for bucket in snapshot.buckets
            ]
            self.session.flush()

        logger.debug(
            "Recomputed overtime for %s: %s (%d weeks)",
            employee_id,
            snapshot.final_balance,
            len(snapshot.buckets),
        )
        return snapshot

    def recompute_all(self) -> RecomputeAllResult:
        """Recompute every non-inactive employee.

        A failure on one employee is logged and collected; it never aborts
        the run.
        """
        result = RecomputeAllResult()
        employee_ids = self.session.scalars(
            select(Employee.employee_id)
            .where(Employee.status != EmployeeStatus.INACTIVE.value)
            .order_by(Employee.last_name, Employee.first_name)
        ).all()

        for employee_id in employee_ids:
            try:
                with self.session.begin_nested():
                    snapshot = self.recompute(employee_id)
                result.snapshots.append(snapshot)
                result.processed += 1
            except Exception as e:
                logger.exception("Overtime recompute failed for employee %s", employee_id)
                result.failed += 1
                result.errors.append({"employee_id": str(employee_id), "error": str(e)})

        ActivityService(self.session).record(
            ActivityType.OVERTIME_RECOMPUTED,
            f"Recomputed overtime for {result.processed} employees",
            processed=result.processed,
            failed=result.failed,
        )
        logger.info(
            "Recomputed overtime for %d employees (%d failed)", result.processed, result.failed
        )
        return result

    def statistics(self) -> OvertimeStatistics:
        employees = self.session.scalars(
            select(Employee).where(Employee.status != EmployeeStatus.INACTIVE.value)
        ).all()
        balances = [to_decimal(e.overtime_balance) for e in employees]
        total = sum(balances, ZERO)
        statuses = [status_of(b) for b in balances]
        return OvertimeStatistics(
            employee_count=len(balances),
            total_balance=total,
            average_balance=total / len(balances) if balances else ZERO,
            positive_count=statuses.count(OvertimeStatus.POSITIVE),
            negative_count=statuses.count(OvertimeStatus.NEGATIVE),
            neutral_count=statuses.count(OvertimeStatus.NEUTRAL),
        )

    def _require_employee(self, employee_id: UUID) -> Employee:
        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def _compute(self, employee: Employee) -> OvertimeSnapshot:
        entries = self.session.scalars(
            select(TimeEntry)
            .where(TimeEntry.employee_id == employee.employee_id)
            .order_by(TimeEntry.work_date, TimeEntry.start_at)
        ).all()
        buckets = bucketize(entries, self.contract_for(employee))

        base_balance = sum((b.overtime_hours for b in buckets), ZERO)
        adjustments_total = self.ledger.total_approved_hours(employee.employee_id)
        return OvertimeSnapshot(
            employee_id=employee.employee_id,
            buckets=tuple(buckets),
            base_balance=base_balance,
            adjustments_total=adjustments_total,
            final_balance=base_balance + adjustments_total,
            computed_at=datetime.now(),
        )
