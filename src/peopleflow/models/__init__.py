"""ORM models."""

from peopleflow.models.absence import Absence
from peopleflow.models.adjustment import OvertimeAdjustment
from peopleflow.models.base import Base, TimestampMixin
from peopleflow.models.employee import Employee, ProjectAssignment, WeeklySummary
from peopleflow.models.enums import (
    AbsenceStatus,
    AbsenceType,
    AdjustmentStatus,
    AdjustmentType,
    EmployeeStatus,
    OvertimeStatus,
    TimeEntrySource,
    WorkTimeModel,
)
from peopleflow.models.integration import ActivityLog, Integration
from peopleflow.models.time_entry import SuppressedImport, TimeEntry

__all__ = [
    "Absence",
    "AbsenceStatus",
    "AbsenceType",
    "ActivityLog",
    "AdjustmentStatus",
    "AdjustmentType",
    "Base",
    "Employee",
    "EmployeeStatus",
    "Integration",
    "OvertimeAdjustment",
    "OvertimeStatus",
    "ProjectAssignment",
    "SuppressedImport",
    "TimeEntry",
    "TimeEntrySource",
    "TimestampMixin",
    "WeeklySummary",
    "WorkTimeModel",
]
