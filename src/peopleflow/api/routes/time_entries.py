"""Time entry endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from peopleflow.api.dependencies import AppSettings, DbSession
from peopleflow.api.schemas import (
    ErrorResponse,
    RemovedCountResponse,
    TimeEntryCreate,
    TimeEntryResponse,
)
from peopleflow.models import TimeEntrySource
from peopleflow.reports.export import ExportService
from peopleflow.services.time_entry_service import TimeEntryFilter, TimeEntryInput, TimeEntryStore

router = APIRouter(tags=["time-entries"])


@router.post(
    "/employees/{employee_id}/time-entries",
    response_model=TimeEntryResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_time_entry(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    payload: TimeEntryCreate,
) -> TimeEntryResponse:
    """Record a manual time entry."""
    entry = TimeEntryStore(db).append(
        employee_id,
        TimeEntryInput(
            start_at=payload.start_at,
            end_at=payload.end_at,
            work_date=payload.work_date,
            spans_midnight=payload.spans_midnight,
            project_ref=payload.project_ref,
            project_name=payload.project_name,
            activity_ref=payload.activity_ref,
            description=payload.description,
        ),
    )
    return TimeEntryResponse.model_validate(entry)


@router.get(
    "/employees/{employee_id}/time-entries",
    response_model=list[TimeEntryResponse],
    responses={404: {"model": ErrorResponse}},
)
def list_time_entries(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
    source: Annotated[TimeEntrySource | None, Query()] = None,
    project_ref: Annotated[str | None, Query()] = None,
) -> list[TimeEntryResponse]:
    filters = TimeEntryFilter(
        date_from=date_from, date_to=date_to, source=source, project_ref=project_ref
    )
    entries = TimeEntryStore(db).list_by_employee(employee_id, filters)
    return [TimeEntryResponse.model_validate(e) for e in entries]


@router.delete(
    "/time-entries/{time_entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
def delete_time_entry(db: DbSession, time_entry_id: Annotated[UUID, Path()]) -> Response:
    """Administrative delete."""
    TimeEntryStore(db).delete(time_entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/employees/{employee_id}/time-entries/remove-duplicates",
    response_model=RemovedCountResponse,
    responses={404: {"model": ErrorResponse}},
)
def remove_duplicates(
    db: DbSession, employee_id: Annotated[UUID, Path()]
) -> RemovedCountResponse:
    return RemovedCountResponse(removed=TimeEntryStore(db).remove_duplicates(employee_id))


@router.get("/time-entries/export")
def export_time_entries(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[list[UUID] | None, Query()] = None,
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
    project_ref: Annotated[str | None, Query()] = None,
) -> Response:
    """Time tracking CSV for external dashboards."""
    content = ExportService(db, settings).time_entries_csv(
        employee_ids=employee_id,
        date_from=date_from,
        date_to=date_to,
        project_ref=project_ref,
    )
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=zeiterfassung.csv"},
    )
