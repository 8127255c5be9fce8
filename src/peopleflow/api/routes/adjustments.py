"""Overtime adjustment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from peopleflow.api.dependencies import DbSession
from peopleflow.api.schemas import (
    AdjustmentCreate,
    AdjustmentResponse,
    DecisionRequest,
    ErrorResponse,
    PendingAdjustmentResponse,
)
from peopleflow.models import AdjustmentStatus
from peopleflow.services.adjustment_service import AdjustmentLedger

router = APIRouter(tags=["adjustments"])


@router.post(
    "/employees/{employee_id}/adjustments",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def submit_adjustment(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    payload: AdjustmentCreate,
) -> AdjustmentResponse:
    """Submit a pending adjustment."""
    adjustment = AdjustmentLedger(db).submit(
        employee_id,
        payload.adjustment_type,
        payload.hours,
        payload.reason,
        description=payload.description,
        author_id=payload.author_id,
        author_name=payload.author_name,
    )
    return AdjustmentResponse.model_validate(adjustment)


@router.get(
    "/employees/{employee_id}/adjustments",
    response_model=list[AdjustmentResponse],
)
def list_adjustments(
    db: DbSession,
    employee_id: Annotated[UUID, Path()],
    status_filter: Annotated[AdjustmentStatus | None, Query(alias="status")] = None,
) -> list[AdjustmentResponse]:
    adjustments = AdjustmentLedger(db).list_for_employee(employee_id, status_filter)
    return [AdjustmentResponse.model_validate(a) for a in adjustments]


@router.post(
    "/adjustments/{adjustment_id}/approve",
    response_model=AdjustmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def approve_adjustment(
    db: DbSession,
    adjustment_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> AdjustmentResponse:
    adjustment = AdjustmentLedger(db).approve(
        adjustment_id, payload.approver_id, payload.approver_name
    )
    return AdjustmentResponse.model_validate(adjustment)


@router.post(
    "/adjustments/{adjustment_id}/reject",
    response_model=AdjustmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def reject_adjustment(
    db: DbSession,
    adjustment_id: Annotated[UUID, Path()],
    payload: DecisionRequest,
) -> AdjustmentResponse:
    adjustment = AdjustmentLedger(db).reject(
        adjustment_id, payload.approver_id, payload.approver_name
    )
    return AdjustmentResponse.model_validate(adjustment)


@router.get("/adjustments/pending", response_model=list[PendingAdjustmentResponse])
def list_pending_adjustments(db: DbSession) -> list[PendingAdjustmentResponse]:
    """Approval queue across all employees, newest first."""
    return [
        PendingAdjustmentResponse(
            **AdjustmentResponse.model_validate(item.adjustment).model_dump(),
            employee_name=item.employee_name,
            department=item.department,
        )
        for item in AdjustmentLedger(db).list_pending()
    ]


@router.delete(
    "/adjustments/{adjustment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
def delete_adjustment(
    db: DbSession,
    adjustment_id: Annotated[UUID, Path()],
    actor: Annotated[str | None, Query()] = None,
) -> Response:
    AdjustmentLedger(db).delete(adjustment_id, actor=actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
