"""Absence and overtime adjustment state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from peopleflow.errors import InvalidTransitionError
from peopleflow.models.enums import AbsenceStatus, AdjustmentStatus


def _code(status: str) -> str:
    return status.value if isinstance(status, Enum) else status


class _StateMachine:
    """Shared transition checks; subclasses define VALID_TRANSITIONS."""

    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(_code(from_status), [])
        return _code(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_code(from_status), _code(to_status))

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(_code(current_status), []))

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(_code(status))


class AbsenceStateMachine(_StateMachine):
    """State machine for absence status transitions.

    Allowed transitions:
    - requested → approved
    - requested → rejected
    - requested → cancelled
    - approved → cancelled
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        AbsenceStatus.REQUESTED.value: [
            AbsenceStatus.APPROVED.value,
            AbsenceStatus.REJECTED.value,
            AbsenceStatus.CANCELLED.value,
        ],
        AbsenceStatus.APPROVED.value: [AbsenceStatus.CANCELLED.value],
        AbsenceStatus.REJECTED.value: [],
        AbsenceStatus.CANCELLED.value: [],
    }

    # Statuses whose days count against the vacation entitlement
    COUNTS_AGAINST_QUOTA = {AbsenceStatus.APPROVED.value}


class AdjustmentStateMachine(_StateMachine):
    """State machine for overtime adjustments: pending → approved | rejected."""

    VALID_TRANSITIONS: dict[str, list[str]] = {
        AdjustmentStatus.PENDING.value: [
            AdjustmentStatus.APPROVED.value,
            AdjustmentStatus.REJECTED.value,
        ],
        AdjustmentStatus.APPROVED.value: [],
        AdjustmentStatus.REJECTED.value: [],
    }

    # Only these contribute to the overtime balance
    CONTRIBUTING = {AdjustmentStatus.APPROVED.value}
