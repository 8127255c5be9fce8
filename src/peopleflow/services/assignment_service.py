"""Project assignments owned by employees."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.errors import ConflictError, InvalidInputError, NotFoundError
from peopleflow.models import Employee, ProjectAssignment, TimeEntrySource
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks


@dataclass(frozen=True)
class AssignmentUpsertResult:
    assignment: ProjectAssignment
    is_new: bool


class ProjectAssignmentStore:
    """Manual and imported project assignments, deduped on (source, foreign_key)."""

    def __init__(self, session: Session, locks: EmployeeLockRegistry | None = None):
        self.session = session
        self.locks = locks or employee_locks

    def list_for_employee(self, employee_id: UUID) -> list[ProjectAssignment]:
        query = (
            select(ProjectAssignment)
            .where(ProjectAssignment.employee_id == employee_id)
            .order_by(ProjectAssignment.start_date)
        )
        return list(self.session.scalars(query))

    def upsert_imported(
        self,
        source: TimeEntrySource,
        foreign_key: str,
        employee_id: UUID,
        project_id: str,
        project_name: str,
        start_date: date,
        end_date: date | None,
    ) -> AssignmentUpsertResult:
        if source is TimeEntrySource.MANUAL or not foreign_key:
            raise InvalidInputError("foreign_key", "is required for imported assignments")
        if end_date is not None and end_date < start_date:
            raise InvalidInputError("end_date", "must not be before start_date")

        with self.locks.hold(employee_id):
            if self.session.get(Employee, employee_id) is None:
                raise NotFoundError("Employee", employee_id)
            assignment = self.session.scalar(
                select(ProjectAssignment).where(
                    ProjectAssignment.source == source.value,
                    ProjectAssignment.foreign_key == foreign_key,
                )
            )
            is_new = assignment is None
            if assignment is None:
                assignment = ProjectAssignment(
                    employee_id=employee_id,
                    source=source.value,
                    foreign_key=foreign_key,
                )
                self.session.add(assignment)
            elif assignment.employee_id != employee_id:
                raise ConflictError(
                    f"{source.value} assignment {foreign_key} belongs to another employee",
                    source=source.value,
                    foreign_key=foreign_key,
                )
            assignment.project_id = project_id
            assignment.project_name = project_name
            assignment.start_date = start_date
            assignment.end_date = end_date
            self.session.flush()
        return AssignmentUpsertResult(assignment=assignment, is_new=is_new)
