"""Integration and activity log models."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Date, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from peopleflow.models.base import Base, JsonDict, TimestampMixin


class Integration(Base, TimestampMixin):
    """Per-provider integration record with encrypted credentials."""

    __tablename__ = "integration"

    integration_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    provider: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    encrypted_credentials: Mapped[str] = mapped_column(Text, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_sync: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sync_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_error: Mapped[str | None] = mapped_column(String, nullable=True)
    last_error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(
        JsonDict, nullable=False, default=dict
    )


class ActivityLog(Base, TimestampMixin):
    """Audit trail entry shown on the dashboard."""

    __tablename__ = "activity_log"

    activity_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    activity_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    actor: Mapped[str] = mapped_column(String, nullable=False, default="system")
    target: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JsonDict, nullable=False, default=dict)
