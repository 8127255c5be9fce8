"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from peopleflow.api.routes import (
    absences_router,
    adjustments_router,
    health_router,
    integrations_router,
    overtime_router,
    time_entries_router,
)
from peopleflow.config import Settings, get_settings
from peopleflow.database import create_all, dispose_db, init_db
from peopleflow.errors import PeopleFlowError
from peopleflow.services.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID": 422,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "QUOTA_EXCEEDED": status.HTTP_409_CONFLICT,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "AUTH": status.HTTP_502_BAD_GATEWAY,
    "TRANSPORT": status.HTTP_502_BAD_GATEWAY,
    "CANCELLED": status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    # Startup
    init_db()
    create_all()
    scheduler = None
    if app.state.start_scheduler:
        scheduler = SyncScheduler(settings)
        scheduler.start()
    app.state.scheduler = scheduler
    yield
    # Shutdown
    if scheduler is not None:
        scheduler.stop()
    app.state.scheduler = None
    if app.state.dispose_on_shutdown:
        dispose_db()


def create_app(
    settings: Settings | None = None,
    start_scheduler: bool | None = None,
    dispose_on_shutdown: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    app = FastAPI(
        title="PeopleFlow API",
        description="Time tracking and overtime accounting",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.start_scheduler = (
        settings.scheduler_enabled if start_scheduler is None else start_scheduler
    )
    app.state.dispose_on_shutdown = dispose_on_shutdown
    app.state.scheduler = None

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PeopleFlowError)
    async def domain_exception_handler(request: Request, exc: PeopleFlowError) -> JSONResponse:
        """Map domain errors to their HTTP status."""
        status_code = ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if status_code >= 500:
            logger.warning(
                "%s %s failed: [%s] %s", request.method, request.url.path, exc.code, exc.message
            )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.code, "context": exc.context},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(overtime_router, prefix="/api/v1")
    app.include_router(adjustments_router, prefix="/api/v1")
    app.include_router(absences_router, prefix="/api/v1")
    app.include_router(time_entries_router, prefix="/api/v1")
    app.include_router(integrations_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
