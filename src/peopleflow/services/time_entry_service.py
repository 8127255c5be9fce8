"""Time entry store with duplicate suppression for imported records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from peopleflow.calculators.types import span_hours, to_decimal
from peopleflow.errors import ConflictError, InvalidInputError, NotFoundError
from peopleflow.models import Employee, SuppressedImport, TimeEntry, TimeEntrySource
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeEntryInput:
    """Values for a new or replaced time entry.

    ``duration_hours`` is derived from the span unless given; imported
    entries pass the provider's value, which is authoritative.
    """

    start_at: datetime
    end_at: datetime
    work_date: date | None = None
    duration_hours: Decimal | None = None
    spans_midnight: bool = False
    project_ref: str = ""
    project_name: str = ""
    activity_ref: str = ""
    description: str | None = None

    def validate(self) -> None:
        if self.end_at <= self.start_at:
            raise InvalidInputError("end_at", "must be after start_at")
        if not self.spans_midnight and self.end_at.date() != self.start_at.date():
            raise InvalidInputError(
                "end_at", "must be on the same day as start_at unless spans_midnight is set"
            )
        if self.duration_hours is not None and to_decimal(self.duration_hours) < 0:
            raise InvalidInputError("duration_hours", "cannot be negative")

    @property
    def resolved_date(self) -> date:
        return self.work_date or self.start_at.date()

    @property
    def resolved_duration(self) -> Decimal:
        if self.duration_hours is not None:
            return to_decimal(self.duration_hours)
        return span_hours(self.start_at, self.end_at)


@dataclass(frozen=True)
class TimeEntryFilter:
    """Optional filters for listing entries."""

    date_from: date | None = None
    date_to: date | None = None
    source: TimeEntrySource | None = None
    project_ref: str | None = None


@dataclass(frozen=True)
class UpsertResult:
    """Result of an idempotent write keyed by (source, foreign_key).

    ``suppressed`` is set when the key was collapsed into ``entry`` by
    ``remove_duplicates``; nothing was written in that case.
    """

    entry: TimeEntry
    is_new: bool
    suppressed: bool = False


def _source_priority(source: str) -> int:
    try:
        return TimeEntrySource(source).priority
    except ValueError:
        return 2


class TimeEntryStore:
    """Persistent store of time entries owned by employees.

    Manual entries may repeat. Imported entries are keyed by
    ``(source, foreign_key)`` and updated in place on re-import.
    """

    def __init__(self, session: Session, locks: EmployeeLockRegistry | None = None):
        self.session = session
        self.locks = locks or employee_locks

    def _require_employee(self, employee_id: UUID) -> Employee:
        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def get(self, time_entry_id: UUID) -> TimeEntry:
        entry = self.session.get(TimeEntry, time_entry_id)
        if entry is None:
            raise NotFoundError("TimeEntry", time_entry_id)
        return entry

    def append(
        self,
        employee_id: UUID,
        data: TimeEntryInput,
        source: TimeEntrySource = TimeEntrySource.MANUAL,
    ) -> TimeEntry:
        """Add a new entry; no duplicate check."""
        data.validate()
        with self.locks.hold(employee_id):
            self._require_employee(employee_id)
            entry = TimeEntry(employee_id=employee_id, source=source.value)
            self._apply(entry, data)
            self.session.add(entry)
            self.session.flush()
        return entry

    def replace_by_foreign_key(
        self,
        source: TimeEntrySource,
        foreign_key: str,
        employee_id: UUID,
        data: TimeEntryInput,
    ) -> UpsertResult:
        """Insert or update the entry identified by ``(source, foreign_key)``.

        Raises:
            InvalidInputError: manual source, empty key or bad span.
            ConflictError: the key already belongs to another employee.
            NotFoundError: unknown employee.
        """
        if source is TimeEntrySource.MANUAL:
            raise InvalidInputError("source", "manual entries have no foreign key")
        if not foreign_key:
            raise InvalidInputError("foreign_key", "is required for imported entries")
        data.validate()

        with self.locks.hold(employee_id):
            self._require_employee(employee_id)
            existing = self._find_by_key(source, foreign_key)
            if existing is not None:
                return UpsertResult(entry=self._update(existing, employee_id, data), is_new=False)

            suppressed = self._find_suppressed(source, foreign_key)
            if suppressed is not None:
                self._check_owner(suppressed.employee_id, employee_id, source.value, foreign_key)
                return UpsertResult(entry=suppressed.survivor, is_new=False, suppressed=True)

            entry = TimeEntry(
                employee_id=employee_id,
                source=source.value,
                foreign_key=foreign_key,
            )
            self._apply(entry, data)
            try:
                with self.session.begin_nested():
                    self.session.add(entry)
            except IntegrityError:
                # Inserted concurrently by another session; fall back to update
                existing = self._find_by_key(source, foreign_key)
                if existing is None:
                    raise
                return UpsertResult(entry=self._update(existing, employee_id, data), is_new=False)
            return UpsertResult(entry=entry, is_new=True)

    def list_by_employee(
        self, employee_id: UUID, filters: TimeEntryFilter | None = None
    ) -> list[TimeEntry]:
        """Entries ordered by date and start time."""
        self._require_employee(employee_id)
        query = select(TimeEntry).where(TimeEntry.employee_id == employee_id)
        if filters is not None:
            if filters.date_from is not None:
                query = query.where(TimeEntry.work_date >= filters.date_from)
            if filters.date_to is not None:
                query = query.where(TimeEntry.work_date <= filters.date_to)
            if filters.source is not None:
                query = query.where(TimeEntry.source == filters.source.value)
            if filters.project_ref is not None:
                query = query.where(TimeEntry.project_ref == filters.project_ref)
        query = query.order_by(TimeEntry.work_date, TimeEntry.start_at, TimeEntry.created_at)
        return list(self.session.scalars(query))

    def delete(self, time_entry_id: UUID) -> None:
        """Administrative delete."""
        entry = self.get(time_entry_id)
        with self.locks.hold(entry.employee_id):
            self.session.delete(entry)
            self.session.flush()

    def remove_duplicates(self, employee_id: UUID) -> int:
        """Collapse entries sharing date, start, end and project.

        The survivor is the manual entry if there is one, otherwise the
        earliest created. Import keys of deleted entries are kept as
        suppressions of the survivor so the next import does not bring them
        back. Returns the number of deleted entries; a second run returns 0.
        """
        with self.locks.hold(employee_id):
            entries = self.list_by_employee(employee_id)
            groups: dict[tuple[date, datetime, datetime, str], list[TimeEntry]] = {}
            for entry in entries:
                key = (entry.work_date, entry.start_at, entry.end_at, entry.project_ref or "")
                groups.setdefault(key, []).append(entry)

            removed = 0
            for group in groups.values():
                if len(group) < 2:
                    continue
                group.sort(
                    key=lambda e: (_source_priority(e.source), e.created_at, str(e.time_entry_id))
                )
                survivor = group[0]
                for duplicate in group[1:]:
                    self._suppress(duplicate, survivor)
                    self.session.delete(duplicate)
                    removed += 1

            if removed:
                self.session.flush()
                logger.info("Removed %d duplicate time entries for %s", removed, employee_id)
        return removed

    def _find_by_key(self, source: TimeEntrySource, foreign_key: str) -> TimeEntry | None:
        return self.session.scalar(
            select(TimeEntry).where(
                TimeEntry.source == source.value,
                TimeEntry.foreign_key == foreign_key,
            )
        )

    def _find_suppressed(
        self, source: TimeEntrySource, foreign_key: str
    ) -> SuppressedImport | None:
        return self.session.get(SuppressedImport, (source.value, foreign_key))

    def _suppress(self, duplicate: TimeEntry, survivor: TimeEntry) -> None:
        # Keys already collapsed into the duplicate move on to the survivor
        for suppression in list(duplicate.suppressed_imports):
            suppression.survivor = survivor
        if duplicate.foreign_key:
            self.session.add(
                SuppressedImport(
                    source=duplicate.source,
                    foreign_key=duplicate.foreign_key,
                    employee_id=duplicate.employee_id,
                    survivor=survivor,
                )
            )

    @staticmethod
    def _check_owner(
        owner_id: UUID, employee_id: UUID, source: str, foreign_key: str | None
    ) -> None:
        if owner_id != employee_id:
            raise ConflictError(
                f"{source} entry {foreign_key} belongs to another employee",
                source=source,
                foreign_key=foreign_key,
                existing_employee_id=str(owner_id),
                employee_id=str(employee_id),
            )

    def _update(self, entry: TimeEntry, employee_id: UUID, data: TimeEntryInput) -> TimeEntry:
        self._check_owner(entry.employee_id, employee_id, entry.source, entry.foreign_key)
        self._apply(entry, data)
        self.session.flush()
        return entry

    @staticmethod
    def _apply(entry: TimeEntry, data: TimeEntryInput) -> None:
        entry.work_date = data.resolved_date
        entry.start_at = data.start_at
        entry.end_at = data.end_at
        entry.spans_midnight = data.spans_midnight
        entry.duration_hours = data.resolved_duration
        entry.project_ref = data.project_ref
        entry.project_name = data.project_name
        entry.activity_ref = data.activity_ref
        entry.description = data.description
