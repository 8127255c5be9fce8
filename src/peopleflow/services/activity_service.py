"""Activity log service."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.models import ActivityLog

logger = logging.getLogger(__name__)


class ActivityType(str, Enum):
    """Activity log categories."""

    SYNC_COMPLETED = "sync_completed"
    SYNC_FAILED = "sync_failed"
    INTEGRATION_CONFIGURED = "integration_configured"
    INTEGRATION_DEACTIVATED = "integration_deactivated"
    DUPLICATES_REMOVED = "duplicates_removed"
    OVERTIME_RECOMPUTED = "overtime_recomputed"
    ADJUSTMENT_SUBMITTED = "adjustment_submitted"
    ADJUSTMENT_APPROVED = "adjustment_approved"
    ADJUSTMENT_REJECTED = "adjustment_rejected"
    ADJUSTMENT_DELETED = "adjustment_deleted"
    ABSENCE_REQUESTED = "absence_requested"
    ABSENCE_APPROVED = "absence_approved"
    ABSENCE_REJECTED = "absence_rejected"
    ABSENCE_CANCELLED = "absence_cancelled"


class ActivityService:
    """Records and lists activity log entries."""

    def __init__(self, session: Session):
        self.session = session

    def record(
        self,
        activity_type: ActivityType | str,
        description: str,
        actor: str | None = None,
        target: str | None = None,
        **details: Any,
    ) -> ActivityLog:
        code = activity_type.value if isinstance(activity_type, ActivityType) else activity_type
        entry = ActivityLog(
            activity_type=code,
            actor=actor or "system",
            target=target,
            description=description,
            details={k: _jsonable(v) for k, v in details.items()},
        )
        self.session.add(entry)
        logger.info("activity %s: %s", code, description)
        return entry

    def recent(self, limit: int = 20, activity_type: str | None = None) -> list[ActivityLog]:
        """Newest entries first."""
        query = select(ActivityLog)
        if activity_type:
            query = query.where(ActivityLog.activity_type == activity_type)
        query = query.order_by(ActivityLog.created_at.desc()).limit(limit)
        return list(self.session.scalars(query))


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return str(value)
