"""Overtime endpoints: snapshots, recomputation, statistics and exports."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response

from peopleflow.api.dependencies import AppSettings, DbSession
from peopleflow.api.schemas import (
    ErrorResponse,
    OvertimeSnapshotResponse,
    OvertimeStatisticsResponse,
    RecomputeAllResponse,
    WeeklyBucketResponse,
)
from peopleflow.calculators.types import OvertimeSnapshot
from peopleflow.models import OvertimeStatus
from peopleflow.reports.export import ExportService
from peopleflow.services.adjustment_service import format_hours
from peopleflow.services.overtime_service import OvertimeEngine

router = APIRouter(tags=["overtime"])


def _snapshot_response(snapshot: OvertimeSnapshot) -> OvertimeSnapshotResponse:
    return OvertimeSnapshotResponse(
        employee_id=snapshot.employee_id,
        weekly_buckets=[WeeklyBucketResponse.model_validate(b) for b in snapshot.buckets],
        base_balance=snapshot.base_balance,
        adjustments_total=snapshot.adjustments_total,
        final_balance=snapshot.final_balance,
        formatted_balance=format_hours(snapshot.final_balance),
        status=snapshot.status.value,
        computed_at=snapshot.computed_at,
    )


@router.get(
    "/employees/{employee_id}/overtime",
    response_model=OvertimeSnapshotResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_overtime(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
) -> OvertimeSnapshotResponse:
    """Compute the current snapshot without writing it back."""
    return _snapshot_response(OvertimeEngine(db, settings).snapshot(employee_id))


@router.post(
    "/employees/{employee_id}/overtime",
    response_model=OvertimeSnapshotResponse,
    responses={404: {"model": ErrorResponse}},
)
def recompute_overtime(
    db: DbSession,
    settings: AppSettings,
    employee_id: Annotated[UUID, Path()],
) -> OvertimeSnapshotResponse:
    """Recompute and persist the employee's balance."""
    return _snapshot_response(OvertimeEngine(db, settings).recompute(employee_id))


@router.post("/overtime/recompute-all", response_model=RecomputeAllResponse)
def recompute_all(db: DbSession, settings: AppSettings) -> RecomputeAllResponse:
    result = OvertimeEngine(db, settings).recompute_all()
    return RecomputeAllResponse(
        processed=result.processed, failed=result.failed, errors=result.errors
    )


@router.get("/overtime/statistics", response_model=OvertimeStatisticsResponse)
def overtime_statistics(db: DbSession, settings: AppSettings) -> OvertimeStatisticsResponse:
    return OvertimeStatisticsResponse.model_validate(OvertimeEngine(db, settings).statistics())


@router.get("/overtime/export")
def export_overtime(
    db: DbSession,
    settings: AppSettings,
    balance: Annotated[OvertimeStatus | None, Query()] = None,
    department: Annotated[str | None, Query()] = None,
) -> Response:
    """Overtime CSV for external dashboards."""
    content = ExportService(db, settings).overtime_csv(status=balance, department=department)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=ueberstunden.csv"},
    )
