"""Hour package schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tutordesk.core.enums import PackageStatusEnum


class CompletedPaymentEvent(BaseModel):
    """Completed-payment notification handed over by the payment integration."""

    student_id: UUID
    course_id: UUID
    hours: Decimal = Field(gt=0, max_digits=8, decimal_places=2)
    price: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    expires_at: datetime | None = None
    external_reference: str | None = Field(default=None, max_length=128)


class PauseRequestCreate(BaseModel):
    """Ask the counter-party to pause a package."""

    reason: str = Field(min_length=1, max_length=1000)
    override: bool = False


class PackageRead(BaseModel):
    """Hour package response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_id: UUID
    ledger_id: UUID
    total_hours: Decimal
    hours_remaining: Decimal
    price: Decimal
    currency: str
    purchase_date: datetime
    expires_at: datetime
    status: PackageStatusEnum
    is_paused: bool
    pause_count: int
    paused_at: datetime | None
    pause_reason: str | None
    total_days_paused: int
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime
