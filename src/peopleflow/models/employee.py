"""Employee aggregate: the employee record and the collections it owns."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from peopleflow.models.base import Base, TimestampMixin
from peopleflow.models.enums import EmployeeStatus, TimeEntrySource, WorkTimeModel

if TYPE_CHECKING:
    from peopleflow.models.absence import Absence
    from peopleflow.models.adjustment import OvertimeAdjustment
    from peopleflow.models.time_entry import TimeEntry


class Employee(Base, TimestampMixin):
    """Employee with contract data and a cached overtime balance.

    ``weekly_hours_target``, ``annual_vacation_days`` and ``region`` may be
    left unset; the configured defaults apply in that case.
    """

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    employee_number: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    position: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=EmployeeStatus.ACTIVE.value
    )
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Contract
    weekly_hours_target: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    working_days_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    work_time_model: Mapped[str] = mapped_column(
        String, nullable=False, default=WorkTimeModel.FULL_TIME.value
    )
    region: Mapped[str | None] = mapped_column(String(2), nullable=True)
    annual_vacation_days: Mapped[Decimal | None] = mapped_column(Numeric(5, 1), nullable=True)

    # Foreign identities
    timebutler_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    erfasst_person_id: Mapped[str | None] = mapped_column(String, nullable=True)

    # Cache written by the overtime engine
    overtime_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 4), nullable=False, default=Decimal("0")
    )
    last_computed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "weekly_hours_target IS NULL OR weekly_hours_target >= 0",
            name="employee_weekly_hours_check",
        ),
        CheckConstraint(
            "working_days_per_week BETWEEN 1 AND 7",
            name="employee_working_days_check",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive', 'onleave', 'remote')",
            name="employee_status_check",
        ),
    )

    # Relationships
    time_entries: Mapped[list[TimeEntry]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )
    absences: Mapped[list[Absence]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )
    adjustments: Mapped[list[OvertimeAdjustment]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )
    project_assignments: Mapped[list[ProjectAssignment]] = relationship(
        back_populates="employee", cascade="all, delete-orphan"
    )
    weekly_summaries: Mapped[list[WeeklySummary]] = relationship(
        back_populates="employee",
        cascade="all, delete-orphan",
        order_by="WeeklySummary.week_start",
    )

    @validates("email")
    def _normalize_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status != EmployeeStatus.INACTIVE.value


class ProjectAssignment(Base, TimestampMixin):
    """Assignment of an employee to a project, manual or imported from plannings."""

    __tablename__ = "project_assignment"

    assignment_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[str] = mapped_column(String, nullable=False)
    project_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    role: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str] = mapped_column(
        String, nullable=False, default=TimeEntrySource.MANUAL.value
    )
    foreign_key: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "foreign_key", name="project_assignment_source_key_unique"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="project_assignment_dates_check",
        ),
    )

    employee: Mapped[Employee] = relationship(back_populates="project_assignments")


class WeeklySummary(Base):
    """Cached weekly bucket; rewritten on every recompute, never a source of truth."""

    __tablename__ = "weekly_summary"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        primary_key=True,
    )
    iso_year: Mapped[int] = mapped_column(Integer, primary_key=True)
    iso_week: Mapped[int] = mapped_column(Integer, primary_key=True)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    planned_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    actual_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    days_worked: Mapped[int] = mapped_column(Integer, nullable=False)

    employee: Mapped[Employee] = relationship(back_populates="weekly_summaries")
