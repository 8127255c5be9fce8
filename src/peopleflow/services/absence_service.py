"""Absence store with lifecycle transitions and vacation quota checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.calculators.holidays import normalize_region, working_days_between
from peopleflow.calculators.types import ZERO, to_decimal
from peopleflow.config import Settings, get_settings
from peopleflow.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
)
from peopleflow.models import Absence, AbsenceStatus, AbsenceType, Employee, TimeEntrySource
from peopleflow.services.activity_service import ActivityService, ActivityType
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks
from peopleflow.services.state_machine import AbsenceStateMachine

logger = logging.getLogger(__name__)

HALF_DAY = Decimal("0.5")


@dataclass(frozen=True)
class ImportedAbsence:
    """Absence as reported by a provider; its status is taken as-is."""

    absence_type: AbsenceType
    status: AbsenceStatus
    start_date: date
    end_date: date
    half_day: bool = False
    days: Decimal | None = None
    reason: str | None = None


@dataclass(frozen=True)
class AbsenceUpsertResult:
    absence: Absence
    is_new: bool


def _parse_type(value: AbsenceType | str) -> AbsenceType:
    try:
        return AbsenceType(value)
    except ValueError:
        raise InvalidInputError("absence_type", f"unknown absence type '{value}'") from None


class AbsenceStore:
    """Absences owned by employees.

    Day counts use working days: weekends and the public holidays of the
    employee's region are not counted. A half-day absence counts 0.5.
    """

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        locks: EmployeeLockRegistry | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.locks = locks or employee_locks
        self.activity = ActivityService(session)

    def _require_employee(self, employee_id: UUID) -> Employee:
        employee = self.session.get(Employee, employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    def get(self, absence_id: UUID) -> Absence:
        absence = self.session.get(Absence, absence_id)
        if absence is None:
            raise NotFoundError("Absence", absence_id)
        return absence

    def region_of(self, employee: Employee) -> str:
        return normalize_region(employee.region, self.settings.default_region)

    def entitlement_of(self, employee: Employee) -> Decimal:
        if employee.annual_vacation_days is None:
            return to_decimal(self.settings.default_vacation_days)
        return to_decimal(employee.annual_vacation_days)

    def count_days(
        self, employee: Employee, start_date: date, end_date: date, half_day: bool = False
    ) -> Decimal:
        """Working days covered by ``[start_date, end_date]``."""
        days = Decimal(working_days_between(start_date, end_date, self.region_of(employee)))
        if half_day:
            return HALF_DAY if days > 0 else ZERO
        return days

    def request(
        self,
        employee_id: UUID,
        absence_type: AbsenceType | str,
        start_date: date,
        end_date: date,
        reason: str | None = None,
        half_day: bool = False,
    ) -> Absence:
        """Create an absence in status ``requested``."""
        kind = _parse_type(absence_type)
        if end_date < start_date:
            raise InvalidInputError("end_date", "must not be before start_date")
        if half_day and start_date != end_date:
            raise InvalidInputError("half_day", "only valid for single-day absences")

        with self.locks.hold(employee_id):
            employee = self._require_employee(employee_id)
            absence = Absence(
                employee_id=employee_id,
                absence_type=kind.value,
                start_date=start_date,
                end_date=end_date,
                half_day=half_day,
                days=self.count_days(employee, start_date, end_date, half_day),
                status=AbsenceStatus.REQUESTED.value,
                reason=reason,
                source=TimeEntrySource.MANUAL.value,
            )
            self.session.add(absence)
            self.session.flush()
            self.activity.record(
                ActivityType.ABSENCE_REQUESTED,
                f"{employee.full_name} requested {kind.value} "
                f"{start_date.isoformat()} to {end_date.isoformat()}",
                target=str(employee_id),
                absence_id=absence.absence_id,
                days=absence.days,
            )
        return absence

    def approve(
        self,
        absence_id: UUID,
        approver_id: str | None = None,
        approver_name: str | None = None,
    ) -> Absence:
        """Approve a requested absence.

        Raises:
            InvalidTransitionError: the absence is not in status requested.
            QuotaExceededError: a vacation would exceed the annual entitlement.
        """
        absence = self.get(absence_id)
        with self.locks.hold(absence.employee_id):
            AbsenceStateMachine.validate_transition(absence.status, AbsenceStatus.APPROVED)
            if absence.absence_type == AbsenceType.VACATION.value:
                self._check_quota(absence)
            return self._transition(
                absence,
                AbsenceStatus.APPROVED,
                ActivityType.ABSENCE_APPROVED,
                approver_id,
                approver_name,
            )

    def reject(
        self,
        absence_id: UUID,
        approver_id: str | None = None,
        approver_name: str | None = None,
    ) -> Absence:
        absence = self.get(absence_id)
        with self.locks.hold(absence.employee_id):
            AbsenceStateMachine.validate_transition(absence.status, AbsenceStatus.REJECTED)
            return self._transition(
                absence,
                AbsenceStatus.REJECTED,
                ActivityType.ABSENCE_REJECTED,
                approver_id,
                approver_name,
            )

    def cancel(self, absence_id: UUID, actor_id: str | None = None) -> Absence:
        absence = self.get(absence_id)
        with self.locks.hold(absence.employee_id):
            AbsenceStateMachine.validate_transition(absence.status, AbsenceStatus.CANCELLED)
            return self._transition(
                absence, AbsenceStatus.CANCELLED, ActivityType.ABSENCE_CANCELLED, actor_id, None
            )

    def list_for_year(self, employee_id: UUID, year: int) -> list[Absence]:
        """Absences overlapping the calendar year, ordered by start date."""
        self._require_employee(employee_id)
        query = (
            select(Absence)
            .where(
                Absence.employee_id == employee_id,
                Absence.start_date <= date(year, 12, 31),
                Absence.end_date >= date(year, 1, 1),
            )
            .order_by(Absence.start_date, Absence.created_at)
        )
        return list(self.session.scalars(query))

    def used_vacation_days(
        self, employee_id: UUID, year: int, exclude: UUID | None = None
    ) -> Decimal:
        """Sum of approved vacation days starting in ``year``."""
        query = select(Absence).where(
            Absence.employee_id == employee_id,
            Absence.absence_type == AbsenceType.VACATION.value,
            Absence.status.in_(AbsenceStateMachine.COUNTS_AGAINST_QUOTA),
            Absence.start_date >= date(year, 1, 1),
            Absence.start_date <= date(year, 12, 31),
        )
        if exclude is not None:
            query = query.where(Absence.absence_id != exclude)
        return sum((to_decimal(a.days) for a in self.session.scalars(query)), ZERO)

    def remaining_vacation_days(self, employee_id: UUID, year: int) -> Decimal:
        employee = self._require_employee(employee_id)
        return self.entitlement_of(employee) - self.used_vacation_days(employee_id, year)

    def upsert_imported(
        self,
        source: TimeEntrySource,
        foreign_key: str,
        employee_id: UUID,
        data: ImportedAbsence,
    ) -> AbsenceUpsertResult:
        """Insert or update a provider absence keyed by ``(source, foreign_key)``."""
        if source is TimeEntrySource.MANUAL:
            raise InvalidInputError("source", "manual absences have no foreign key")
        if not foreign_key:
            raise InvalidInputError("foreign_key", "is required for imported absences")
        if data.end_date < data.start_date:
            raise InvalidInputError("end_date", "must not be before start_date")

        with self.locks.hold(employee_id):
            employee = self._require_employee(employee_id)
            absence = self.session.scalar(
                select(Absence).where(
                    Absence.source == source.value,
                    Absence.foreign_key == foreign_key,
                )
            )
            is_new = absence is None
            if absence is None:
                absence = Absence(
                    employee_id=employee_id,
                    source=source.value,
                    foreign_key=foreign_key,
                )
                self.session.add(absence)
            elif absence.employee_id != employee_id:
                raise ConflictError(
                    f"{source.value} absence {foreign_key} belongs to another employee",
                    source=source.value,
                    foreign_key=foreign_key,
                )

            days = data.days
            if days is None or days < Decimal("0.1"):
                days = self.count_days(employee, data.start_date, data.end_date, data.half_day)
            absence.absence_type = data.absence_type.value
            absence.status = data.status.value
            absence.start_date = data.start_date
            absence.end_date = data.end_date
            absence.half_day = data.half_day
            absence.days = days
            absence.reason = data.reason
            self.session.flush()
        return AbsenceUpsertResult(absence=absence, is_new=is_new)

    def _check_quota(self, absence: Absence) -> None:
        employee = self._require_employee(absence.employee_id)
        year = absence.start_date.year
        entitlement = self.entitlement_of(employee)
        used = self.used_vacation_days(employee.employee_id, year, exclude=absence.absence_id)
        requested = to_decimal(absence.days)
        if used + requested > entitlement:
            raise QuotaExceededError(employee.employee_id, year, entitlement, used, requested)

    def _transition(
        self,
        absence: Absence,
        to_status: AbsenceStatus,
        activity_type: ActivityType,
        actor_id: str | None,
        actor_name: str | None,
    ) -> Absence:
        from_status = absence.status
        absence.status = to_status.value
        if to_status is not AbsenceStatus.CANCELLED:
            absence.approver_id = actor_id
            absence.approver_name = actor_name
        absence.decided_at = datetime.now()
        self.session.flush()
        self.activity.record(
            activity_type,
            f"Absence {absence.absence_id} {from_status} -> {to_status.value}",
            actor=actor_name or actor_id,
            target=str(absence.employee_id),
            absence_id=absence.absence_id,
        )
        logger.info(
            "Absence %s transitioned %s -> %s", absence.absence_id, from_status, to_status.value
        )
        return absence
