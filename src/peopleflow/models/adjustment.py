"""Overtime adjustment model."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peopleflow.models.base import Base, TimestampMixin
from peopleflow.models.enums import AdjustmentStatus

if TYPE_CHECKING:
    from peopleflow.models.employee import Employee


class OvertimeAdjustment(Base, TimestampMixin):
    """Manually entered signed hour delta; counts only once approved."""

    __tablename__ = "overtime_adjustment"

    adjustment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    adjustment_type: Mapped[str] = mapped_column(String, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    reason: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=AdjustmentStatus.PENDING.value
    )
    author_id: Mapped[str | None] = mapped_column(String, nullable=True)
    author_name: Mapped[str | None] = mapped_column(String, nullable=True)
    approver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    approver_name: Mapped[str | None] = mapped_column(String, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "adjustment_type IN ('correction', 'manual', 'bonus', 'penalty')",
            name="overtime_adjustment_type_check",
        ),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="overtime_adjustment_status_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="adjustments")
