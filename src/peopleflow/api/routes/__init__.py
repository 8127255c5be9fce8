"""API routes."""

from peopleflow.api.routes.absences import router as absences_router
from peopleflow.api.routes.adjustments import router as adjustments_router
from peopleflow.api.routes.health import router as health_router
from peopleflow.api.routes.integrations import router as integrations_router
from peopleflow.api.routes.overtime import router as overtime_router
from peopleflow.api.routes.time_entries import router as time_entries_router

__all__ = [
    "absences_router",
    "adjustments_router",
    "health_router",
    "integrations_router",
    "overtime_router",
    "time_entries_router",
]
