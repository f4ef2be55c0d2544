"""Credit ledger schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LedgerGrantRequest(BaseModel):
    """Manual top-up of a ledger."""

    hours: Decimal = Field(gt=0, max_digits=8, decimal_places=2)


class LedgerRead(BaseModel):
    """Credit ledger response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_id: UUID
    total_hours: Decimal
    uncommitted_hours: Decimal
    committed_hours: Decimal
    completed_hours: Decimal
    currency: str
    created_at: datetime
    updated_at: datetime
