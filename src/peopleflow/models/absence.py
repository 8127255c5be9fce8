"""Absence model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peopleflow.models.base import Base, TimestampMixin
from peopleflow.models.enums import AbsenceStatus, TimeEntrySource

if TYPE_CHECKING:
    from peopleflow.models.employee import Employee


class Absence(Base, TimestampMixin):
    """Vacation, sick leave or special leave for one employee."""

    __tablename__ = "absence"

    absence_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    absence_type: Mapped[str] = mapped_column(String, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    half_day: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    days: Mapped[Decimal] = mapped_column(Numeric(6, 1), nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=AbsenceStatus.REQUESTED.value
    )
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    approver_id: Mapped[str | None] = mapped_column(String, nullable=True)
    approver_name: Mapped[str | None] = mapped_column(String, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    source: Mapped[str] = mapped_column(
        String, nullable=False, default=TimeEntrySource.MANUAL.value
    )
    foreign_key: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "foreign_key", name="absence_source_key_unique"),
        CheckConstraint("end_date >= start_date", name="absence_dates_check"),
        CheckConstraint("days >= 0", name="absence_days_check"),
        CheckConstraint(
            "absence_type IN ('vacation', 'sick', 'special')",
            name="absence_type_check",
        ),
        CheckConstraint(
            "status IN ('requested', 'approved', 'rejected', 'cancelled')",
            name="absence_status_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="absences")
