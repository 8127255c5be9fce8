"""Overtime adjustment ledger."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.calculators.types import ZERO, to_decimal
from peopleflow.errors import InvalidInputError, NotFoundError
from peopleflow.models import AdjustmentStatus, AdjustmentType, Employee, OvertimeAdjustment
from peopleflow.services.activity_service import ActivityService, ActivityType
from peopleflow.services.state_machine import AdjustmentStateMachine

logger = logging.getLogger(__name__)


def format_hours(hours: Decimal | float) -> str:
    """Render signed hours as ``+H.H Std`` / ``-H.H Std``.

    One decimal, rounded half away from zero. Display only.
    """
    rounded = to_decimal(hours).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    if rounded == 0:
        return "+0.0 Std"
    sign = "+" if rounded > 0 else "-"
    return f"{sign}{abs(rounded)} Std"


@dataclass(frozen=True)
class PendingAdjustment:
    """Pending adjustment with the owner's name for the approval queue."""

    adjustment: OvertimeAdjustment
    employee_name: str
    department: str | None


class AdjustmentLedger:
    """Manually entered overtime adjustments with approval workflow."""

    def __init__(self, session: Session):
        self.session = session
        self.activity = ActivityService(session)

    def get(self, adjustment_id: UUID) -> OvertimeAdjustment:
        adjustment = self.session.get(OvertimeAdjustment, adjustment_id)
        if adjustment is None:
            raise NotFoundError("OvertimeAdjustment", adjustment_id)
        return adjustment

    def submit(
        self,
        employee_id: UUID,
        adjustment_type: AdjustmentType | str,
        hours: Decimal | float,
        reason: str,
        description: str | None = None,
        author_id: str | None = None,
        author_name: str | None = None,
    ) -> OvertimeAdjustment:
        """Record a pending adjustment."""
        try:
            kind = AdjustmentType(adjustment_type)
        except ValueError:
            raise InvalidInputError(
                "adjustment_type", f"unknown adjustment type '{adjustment_type}'"
            ) from None
        delta = to_decimal(hours)
        if delta == 0:
            raise InvalidInputError("hours", "must not be zero")
        if not reason or not reason.strip():
            raise InvalidInputError("reason", "is required")

        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)

        adjustment = OvertimeAdjustment(
            employee_id=employee_id,
            adjustment_type=kind.value,
            hours=delta,
            reason=reason.strip(),
            description=description,
            status=AdjustmentStatus.PENDING.value,
            author_id=author_id,
            author_name=author_name,
        )
        self.session.add(adjustment)
        self.session.flush()
        self.activity.record(
            ActivityType.ADJUSTMENT_SUBMITTED,
            f"Adjustment {format_hours(delta)} for {employee.full_name}",
            actor=author_name or author_id,
            target=str(employee_id),
            adjustment_id=adjustment.adjustment_id,
        )
        return adjustment

    def approve(
        self, adjustment_id: UUID, approver_id: str, approver_name: str | None = None
    ) -> OvertimeAdjustment:
        return self._decide(adjustment_id, AdjustmentStatus.APPROVED, approver_id, approver_name)

    def reject(
        self, adjustment_id: UUID, approver_id: str, approver_name: str | None = None
    ) -> OvertimeAdjustment:
        return self._decide(adjustment_id, AdjustmentStatus.REJECTED, approver_id, approver_name)

    def list_for_employee(
        self, employee_id: UUID, status: AdjustmentStatus | None = None
    ) -> list[OvertimeAdjustment]:
        query = select(OvertimeAdjustment).where(OvertimeAdjustment.employee_id == employee_id)
        if status is not None:
            query = query.where(OvertimeAdjustment.status == status.value)
        query = query.order_by(OvertimeAdjustment.created_at)
        return list(self.session.scalars(query))

    def list_pending(self) -> list[PendingAdjustment]:
        """Pending adjustments of all employees, newest first."""
        query = (
            select(OvertimeAdjustment, Employee)
            .join(Employee, OvertimeAdjustment.employee_id == Employee.employee_id)
            .where(OvertimeAdjustment.status == AdjustmentStatus.PENDING.value)
            .order_by(OvertimeAdjustment.created_at.desc())
        )
        return [
            PendingAdjustment(adjustment, employee.full_name, employee.department)
            for adjustment, employee in self.session.execute(query)
        ]

    def list_approved(self, employee_id: UUID) -> list[OvertimeAdjustment]:
        """Adjustments that contribute to the balance."""
        query = (
            select(OvertimeAdjustment)
            .where(
                OvertimeAdjustment.employee_id == employee_id,
                OvertimeAdjustment.status.in_(AdjustmentStateMachine.CONTRIBUTING),
            )
            .order_by(OvertimeAdjustment.created_at)
        )
        return list(self.session.scalars(query))

    def total_approved_hours(self, employee_id: UUID) -> Decimal:
        """Signed sum of approved adjustments; pending and rejected never count."""
        return sum((to_decimal(a.hours) for a in self.list_approved(employee_id)), ZERO)

    def delete(self, adjustment_id: UUID, actor: str | None = None) -> None:
        """Remove an adjustment in any status."""
        adjustment = self.get(adjustment_id)
        self.activity.record(
            ActivityType.ADJUSTMENT_DELETED,
            f"Adjustment {format_hours(adjustment.hours)} ({adjustment.status}) deleted",
            actor=actor,
            target=str(adjustment.employee_id),
            adjustment_id=adjustment.adjustment_id,
        )
        self.session.delete(adjustment)
        self.session.flush()
        logger.info("Deleted adjustment %s", adjustment_id)

    def _decide(
        self,
        adjustment_id: UUID,
        to_status: AdjustmentStatus,
        approver_id: str,
        approver_name: str | None,
    ) -> OvertimeAdjustment:
        adjustment = self.get(adjustment_id)
        AdjustmentStateMachine.validate_transition(adjustment.status, to_status)

        adjustment.status = to_status.value
        adjustment.approver_id = approver_id
        adjustment.approver_name = approver_name
        adjustment.approved_at = datetime.now()
        self.session.flush()

        activity_type = (
            ActivityType.ADJUSTMENT_APPROVED
            if to_status is AdjustmentStatus.APPROVED
            else ActivityType.ADJUSTMENT_REJECTED
        )
        self.activity.record(
            activity_type,
            f"Adjustment {format_hours(adjustment.hours)} {to_status.value}",
            actor=approver_name or approver_id,
            target=str(adjustment.employee_id),
            adjustment_id=adjustment.adjustment_id,
        )
        return adjustment
