"""Health check endpoints."""

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from peopleflow.api.dependencies import AppSettings, DbSession, Scheduler
from peopleflow.services.integration_service import IntegrationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    scheduler: str
    integrations: list[dict[str, Any]]


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
def health_check(db: DbSession, settings: AppSettings, scheduler: Scheduler) -> HealthResponse:
    """Check API, database and integration health.

    An integration whose credentials were rejected reports ``error`` and
    makes the overall status ``degraded``.
    """
    integrations: list[dict[str, Any]] = []
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
        integrations = IntegrationService(db, settings).health()
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        db_status = "unhealthy"

    if scheduler is None:
        scheduler_status = "disabled"
    else:
        scheduler_status = "running" if scheduler.is_running else "stopped"

    healthy = db_status == "healthy" and all(i["status"] != "error" for i in integrations)
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        scheduler=scheduler_status,
        integrations=integrations,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
