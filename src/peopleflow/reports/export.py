"""CSV exports for time tracking and overtime, with German labels."""

from __future__ import annotations

import csv
import io
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from peopleflow.calculators.types import ZERO, status_of, to_decimal
from peopleflow.config import Settings, get_settings
from peopleflow.models import (
    AbsenceStatus,
    AbsenceType,
    AdjustmentStatus,
    AdjustmentType,
    Employee,
    EmployeeStatus,
    OvertimeStatus,
    TimeEntry,
    WorkTimeModel,
)

WORK_TIME_MODEL_LABELS = {
    WorkTimeModel.FULL_TIME: "Vollzeit",
    WorkTimeModel.PART_TIME: "Teilzeit",
    WorkTimeModel.FLEX: "Gleitzeit",
    WorkTimeModel.REMOTE: "Remote/Homeoffice",
    WorkTimeModel.SHIFT: "Schichtarbeit",
    WorkTimeModel.CONTRACT: "Werkvertrag",
    WorkTimeModel.INTERN: "Praktikum",
}

ADJUSTMENT_TYPE_LABELS = {
    AdjustmentType.CORRECTION: "Korrektur",
    AdjustmentType.MANUAL: "Manuelle Anpassung",
    AdjustmentType.BONUS: "Bonus/Ausgleich",
    AdjustmentType.PENALTY: "Abzug",
}

ADJUSTMENT_STATUS_LABELS = {
    AdjustmentStatus.PENDING: "Ausstehend",
    AdjustmentStatus.APPROVED: "Genehmigt",
    AdjustmentStatus.REJECTED: "Abgelehnt",
}

ABSENCE_TYPE_LABELS = {
    AbsenceType.VACATION: "Urlaub",
    AbsenceType.SICK: "Krank",
    AbsenceType.SPECIAL: "Sonderurlaub",
}

ABSENCE_STATUS_LABELS = {
    AbsenceStatus.REQUESTED: "Beantragt",
    AbsenceStatus.APPROVED: "Genehmigt",
    AbsenceStatus.REJECTED: "Abgelehnt",
    AbsenceStatus.CANCELLED: "Storniert",
}

OVERTIME_STATUS_LABELS = {
    OvertimeStatus.POSITIVE: "Überstunden",
    OvertimeStatus.NEGATIVE: "Minusstunden",
    OvertimeStatus.NEUTRAL: "Ausgeglichen",
}

NOT_COMPUTED = "Noch nicht berechnet"

TIME_HEADER = ["Mitarbeiter", "Datum", "Start", "Ende", "Dauer", "Projekt", "Tätigkeit"]
OVERTIME_HEADER = [
    "Mitarbeiter",
    "Abteilung",
    "Wochenstunden (Soll)",
    "Erfasste Stunden",
    "Überstunden-Saldo",
    "Status",
    "Letzte Berechnung",
]


def label_for(labels: dict, value: str) -> str:
    """German label for an enum code; unknown codes are returned unchanged."""
    for member, label in labels.items():
        if member.value == value:
            return label
    return value


def _fixed(value: Decimal, places: str) -> str:
    return str(to_decimal(value).quantize(Decimal(places), rounding=ROUND_HALF_UP))


def _signed(value: Decimal) -> str:
    rounded = to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    # Values that round to zero print as +0.00, never -0.00
    if rounded == 0:
        return "+0.00"
    return str(rounded) if rounded < 0 else f"+{rounded}"


def _writer(output: io.StringIO):
    return csv.writer(output, lineterminator="\n")


class ExportService:
    """Renders CSV exports consumed by external dashboards."""

    def __init__(self, session: Session, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    def time_entries_csv(
        self,
        employee_ids: Iterable[UUID] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        project_ref: str | None = None,
    ) -> str:
        """Time tracking export, one row per entry."""
        query = (
            select(TimeEntry, Employee)
            .join(Employee, TimeEntry.employee_id == Employee.employee_id)
            .order_by(Employee.last_name, Employee.first_name, TimeEntry.work_date, TimeEntry.start_at)
        )
        if employee_ids is not None:
            query = query.where(TimeEntry.employee_id.in_(list(employee_ids)))
        if date_from is not None:
            query = query.where(TimeEntry.work_date >= date_from)
        if date_to is not None:
            query = query.where(TimeEntry.work_date <= date_to)
        if project_ref:
            query = query.where(TimeEntry.project_ref == project_ref)

        output = io.StringIO()
        writer = _writer(output)
        writer.writerow(TIME_HEADER)
        for entry, employee in self.session.execute(query):
            writer.writerow([
                employee.full_name,
                entry.work_date.strftime("%d.%m.%Y"),
                entry.start_at.strftime("%H:%M"),
                entry.end_at.strftime("%H:%M"),
                _fixed(entry.duration_hours, "0.01"),
                entry.project_name or "",
                entry.activity_ref or "",
            ])
        return output.getvalue()

    def overtime_csv(
        self,
        status: OvertimeStatus | None = None,
        department: str | None = None,
    ) -> str:
        """Overtime export from the cached balances.

        Inactive employees and employees without any time entry are left out.
        """
        query = (
            select(Employee)
            .where(Employee.status != EmployeeStatus.INACTIVE.value)
            .options(selectinload(Employee.time_entries))
            .order_by(Employee.last_name, Employee.first_name)
        )
        if department:
            query = query.where(Employee.department == department)

        output = io.StringIO()
        writer = _writer(output)
        writer.writerow(OVERTIME_HEADER)
        for employee in self.session.scalars(query):
            if not employee.time_entries:
                continue
            balance = to_decimal(employee.overtime_balance)
            balance_status = status_of(balance)
            if status is not None and balance_status is not status:
                continue

            weekly = employee.weekly_hours_target
            if weekly is None:
                weekly = self.settings.default_weekly_hours
            recorded = sum((to_decimal(e.duration_hours) for e in employee.time_entries), ZERO)
            computed = (
                employee.last_computed_at.strftime("%d.%m.%Y %H:%M")
                if employee.last_computed_at
                else NOT_COMPUTED
            )
            writer.writerow([
                employee.full_name,
                employee.department or "",
                _fixed(weekly, "0.1"),
                _fixed(recorded, "0.1"),
                _signed(balance),
                OVERTIME_STATUS_LABELS[balance_status],
                computed,
            ])
        return output.getvalue()
