"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Overtime schemas
# ============================================================================


class WeeklyBucketResponse(BaseModel):
    """One ISO week of an overtime snapshot."""

    model_config = ConfigDict(from_attributes=True)

    iso_year: int
    iso_week: int
    label: str
    week_start: date
    week_end: datetime
    planned_hours: Decimal
    actual_hours: Decimal
    overtime_hours: Decimal
    days_worked: int


class OvertimeSnapshotResponse(BaseModel):
    """Result of an overtime computation."""

    employee_id: UUID
    weekly_buckets: list[WeeklyBucketResponse]
    base_balance: Decimal
    adjustments_total: Decimal
    final_balance: Decimal
    formatted_balance: str
    status: str
    computed_at: datetime


class RecomputeAllResponse(BaseModel):
    processed: int
    failed: int
    errors: list[dict[str, Any]] = Field(default_factory=list)


class OvertimeStatisticsResponse(BaseModel):
    """Aggregate balances over active employees."""

    model_config = ConfigDict(from_attributes=True)

    employee_count: int
    total_balance: Decimal
    average_balance: Decimal
    positive_count: int
    negative_count: int
    neutral_count: int


# ============================================================================
# Adjustment schemas
# ============================================================================


class AdjustmentCreate(BaseModel):
    """Schema for submitting an overtime adjustment."""

    adjustment_type: str
    hours: Decimal
    reason: str
    description: str | None = None
    author_id: str | None = None
    author_name: str | None = None


class DecisionRequest(BaseModel):
    """Approver identity for approve/reject endpoints."""

    approver_id: str
    approver_name: str | None = None


class AdjustmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    adjustment_id: UUID
    employee_id: UUID
    adjustment_type: str
    hours: Decimal
    reason: str
    description: str | None = None
    status: str
    author_id: str | None = None
    author_name: str | None = None
    approver_id: str | None = None
    approver_name: str | None = None
    approved_at: datetime | None = None
    created_at: datetime


class PendingAdjustmentResponse(AdjustmentResponse):
    """Adjustment in the approval queue with its owner."""

    employee_name: str
    department: str | None = None


# ============================================================================
# Absence schemas
# ============================================================================


class AbsenceCreate(BaseModel):
    """Schema for requesting an absence."""

    absence_type: str
    start_date: date
    end_date: date
    half_day: bool = False
    reason: str | None = None


class CancelRequest(BaseModel):
    actor_id: str | None = None


class AbsenceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    absence_id: UUID
    employee_id: UUID
    absence_type: str
    start_date: date
    end_date: date
    half_day: bool
    days: Decimal
    status: str
    reason: str | None = None
    approver_id: str | None = None
    approver_name: str | None = None
    decided_at: datetime | None = None
    source: str
    created_at: datetime


class VacationBalanceResponse(BaseModel):
    employee_id: UUID
    year: int
    entitlement: Decimal
    used: Decimal
    remaining: Decimal


# ============================================================================
# Time entry schemas
# ============================================================================


class TimeEntryCreate(BaseModel):
    """Schema for a manual time entry."""

    start_at: datetime
    end_at: datetime
    work_date: date | None = None
    spans_midnight: bool = False
    project_ref: str = ""
    project_name: str = ""
    activity_ref: str = ""
    description: str | None = None


class TimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time_entry_id: UUID
    employee_id: UUID
    work_date: date
    start_at: datetime
    end_at: datetime
    spans_midnight: bool
    duration_hours: Decimal
    project_ref: str
    project_name: str
    activity_ref: str
    description: str | None = None
    source: str
    foreign_key: str | None = None
    created_at: datetime


class RemovedCountResponse(BaseModel):
    removed: int


# ============================================================================
# Integration schemas
# ============================================================================


class IntegrationConfigure(BaseModel):
    """Credentials and options for a provider integration."""

    credentials: str
    auto_sync: bool | None = None
    sync_start_date: date | None = None


class IntegrationUpdate(BaseModel):
    active: bool | None = None
    auto_sync: bool | None = None
    sync_start_date: date | None = None


class IntegrationResponse(BaseModel):
    """Integration without its credentials."""

    model_config = ConfigDict(from_attributes=True)

    provider: str
    name: str
    active: bool
    auto_sync: bool
    sync_start_date: date | None = None
    last_sync_at: datetime | None = None
    last_error: str | None = None
    last_error_code: str | None = None


class ConnectionTestResponse(BaseModel):
    provider: str
    connected: bool
    error: str | None = None
    error_code: str | None = None


class ProviderSyncResponse(BaseModel):
    provider: str
    success: bool
    error_code: str | None = None
    error: str | None = None
    summary: dict[str, int]


class SyncResponse(BaseModel):
    """Result of a manually triggered sync."""

    started: bool
    providers: list[ProviderSyncResponse] = Field(default_factory=list)


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
