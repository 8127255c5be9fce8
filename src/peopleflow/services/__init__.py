"""PeopleFlow services."""

from peopleflow.services.absence_service import AbsenceStore
from peopleflow.services.adjustment_service import AdjustmentLedger, format_hours
from peopleflow.services.import_service import ImportPipeline
from peopleflow.services.locking_service import EmployeeLockRegistry, employee_locks
from peopleflow.services.overtime_service import OvertimeEngine
from peopleflow.services.scheduler import SyncScheduler
from peopleflow.services.state_machine import AbsenceStateMachine, AdjustmentStateMachine
from peopleflow.services.time_entry_service import TimeEntryStore

__all__ = [
    "AbsenceStateMachine",
    "AbsenceStore",
    "AdjustmentLedger",
    "AdjustmentStateMachine",
    "EmployeeLockRegistry",
    "ImportPipeline",
    "OvertimeEngine",
    "SyncScheduler",
    "TimeEntryStore",
    "employee_locks",
    "format_hours",
]
