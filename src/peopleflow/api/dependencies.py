"""FastAPI dependencies for dependency injection."""

from collections.abc import Iterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from peopleflow.config import Settings, get_settings
from peopleflow.database import init_db
from peopleflow.services.scheduler import SyncScheduler


def get_db_session() -> Iterator[Session]:
    """Get database session dependency; commits when the handler succeeds."""
    _, factory = init_db()
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with."""
    settings = getattr(request.app.state, "settings", None)
    return settings or get_settings()


def get_scheduler(request: Request) -> SyncScheduler | None:
    """The running scheduler, if the app started one."""
    return getattr(request.app.state, "scheduler", None)


# Type aliases for cleaner dependency injection
DbSession = Annotated[Session, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Scheduler = Annotated[SyncScheduler | None, Depends(get_scheduler)]
