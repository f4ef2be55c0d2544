"""Session instance schemas."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tutordesk.core.enums import BillingTypeEnum, SessionStatusEnum


class SessionInstanceRead(BaseModel):
    """Session instance response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    teacher_id: UUID
    course_id: UUID
    unit_id: UUID | None
    catalog_session_id: UUID | None
    title: str | None
    lesson_date: date
    start_time: time
    end_time: time
    starts_at: datetime
    ends_at: datetime
    duration_hours: Decimal
    billing_type: BillingTypeEnum
    status: SessionStatusEnum
    ledger_id: UUID | None
    package_id: UUID | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime
