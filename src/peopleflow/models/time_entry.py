"""Time entry model."""

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
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peopleflow.models.base import Base, TimestampMixin
from peopleflow.models.enums import TimeEntrySource

if TYPE_CHECKING:
    from peopleflow.models.employee import Employee


class TimeEntry(Base, TimestampMixin):
    """Atomic span of recorded work.

    Imported entries are keyed by ``(source, foreign_key)``; manual entries
    leave ``foreign_key`` empty and may legitimately repeat.
    """

    __tablename__ = "time_entry"

    time_entry_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime] = mapped_column(nullable=False)
    spans_midnight: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    duration_hours: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    project_ref: Mapped[str] = mapped_column(String, nullable=False, default="")
    project_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    activity_ref: Mapped[str] = mapped_column(String, nullable=False, default="")
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[str] = mapped_column(
        String, nullable=False, default=TimeEntrySource.MANUAL.value
    )
    foreign_key: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("source", "foreign_key", name="time_entry_source_key_unique"),
        CheckConstraint("duration_hours >= 0", name="time_entry_duration_check"),
        CheckConstraint("end_at > start_at", name="time_entry_span_check"),
        Index("time_entry_employee_date_idx", "employee_id", "work_date"),
    )

    employee: Mapped[Employee] = relationship(back_populates="time_entries")
    suppressed_imports: Mapped[list[SuppressedImport]] = relationship(
        back_populates="survivor", cascade="all, delete-orphan"
    )

    @property
    def is_imported(self) -> bool:
        return self.source != TimeEntrySource.MANUAL.value


class SuppressedImport(Base, TimestampMixin):
    """Import key whose entry was collapsed into another entry.

    Re-importing the key resolves to the surviving entry instead of
    recreating the duplicate. The row goes away with its survivor.
    """

    __tablename__ = "suppressed_import"

    source: Mapped[str] = mapped_column(String, primary_key=True)
    foreign_key: Mapped[str] = mapped_column(String, primary_key=True)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    time_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_entry.time_entry_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    survivor: Mapped[TimeEntry] = relationship(back_populates="suppressed_imports")
