"""Absence endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from peopleflow.api.dependencies import AppSettings, DbSession
from peopleflow.api.schemas import (
    AbsenceCreate,
    AbsenceResponse,
    CancelRequest,
    DecisionRequest,
    ErrorResponse,
    VacationBalanceResponse,
)
from peopleflow.services.absence_service import AbsenceStore

router = APIRouter(tags=["absences"])


@router.post(
    "/employees/{employee_id}/absences",
    response_model=AbsenceResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def request_absence(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    payload: AbsenceCreate,
) -> AbsenceResponse:
    absence = AbsenceStore(db, settings).request(
        employee_id,
        payload.absence_type,
        payload.start_date,
        payload.end_date,
        reason=payload.reason,
        half_day=payload.half_day,
    )
    return AbsenceResponse.model_validate(absence)


@router.get(
    "/employees/{employee_id}/absences",
    response_model=list[AbsenceResponse],
    responses={404: {"model": ErrorResponse}},
)
def list_absences(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
) -> list[AbsenceResponse]:
    """Absences overlapping the given year (default: current year)."""
    absences = AbsenceStore(db, settings).list_for_year(employee_id, year or date.today().year)
    return [AbsenceResponse.model_validate(a) for a in absences]


@router.get(
    "/employees/{employee_id}/vacation",
    response_model=VacationBalanceResponse,
    responses={404: {"model": ErrorResponse}},
)
def vacation_balance(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
    year: Annotated[int | None, Query(ge=1900, le=9999)] = None,
) -> VacationBalanceResponse:
    store = AbsenceStore(db, settings)
    year = year or date.today().year
    remaining = store.remaining_vacation_days(employee_id, year)
    used = store.used_vacation_days(employee_id, year)
    return VacationBalanceResponse(
        employee_id=employee_id,
        year=year,
        entitlement=remaining + used,
        used=used,
        remaining=remaining,
    )


@router.post(
    "/absences/{absence_id}/approve",
    response_model=AbsenceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def approve_absence(
    db: DbSession,
    settings: AppSettings,
    absence_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> AbsenceResponse:
    absence = AbsenceStore(db, settings).approve(
        absence_id, payload.approver_id, payload.approver_name
    )
    return AbsenceResponse.model_validate(absence)


@router.post(
    "/absences/{absence_id}/reject",
    response_model=AbsenceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def reject_absence(
    db: DbSession,
    settings: AppSettings,
    absence_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> AbsenceResponse:
    absence = AbsenceStore(db, settings).reject(
        absence_id, payload.approver_id, payload.approver_name
    )
    return AbsenceResponse.model_validate(absence)


@router.post(
    "/absences/{absence_id}/cancel",
    response_model=AbsenceResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def cancel_absence(
    db: DbSession,
    settings: AppSettings,
    absence_id: Annotated[UUID, Path()],
    payload: CancelRequest,
) -> AbsenceResponse:
    absence = AbsenceStore(db, settings).cancel(absence_id, payload.actor_id)
    return AbsenceResponse.model_validate(absence)
