"""Closed enumerations stored as stable string codes."""

from __future__ import annotations

from enum import Enum


class EmployeeStatus(str, Enum):
    """Employee status values; INACTIVE is a soft delete."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    ON_LEAVE = "onleave"
    REMOTE = "remote"


class WorkTimeModel(str, Enum):
    """Contractual work time model."""

    FULL_TIME = "fulltime"
    PART_TIME = "parttime"
    FLEX = "flextime"
    REMOTE = "remote"
    SHIFT = "shift"
    CONTRACT = "contract"
    INTERN = "internship"


class TimeEntrySource(str, Enum):
    """Origin of a time entry, absence or project assignment."""

    MANUAL = "manual"
    PROVIDER_A = "timebutler"
    PROVIDER_B = "123erfasst"

    @property
    def priority(self) -> int:
        """Lower wins when collapsing duplicates; manual entries are kept first."""
        return 0 if self is TimeEntrySource.MANUAL else 1


class AbsenceType(str, Enum):
    """Absence kinds."""

    VACATION = "vacation"
    SICK = "sick"
    SPECIAL = "special"


class AbsenceStatus(str, Enum):
    """Absence lifecycle states."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AdjustmentType(str, Enum):
    """Overtime adjustment kinds."""

    CORRECTION = "correction"
    MANUAL = "manual"
    BONUS = "bonus"
    PENALTY = "penalty"


class AdjustmentStatus(str, Enum):
    """Overtime adjustment lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OvertimeStatus(str, Enum):
    """Sign of an overtime balance."""

    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
