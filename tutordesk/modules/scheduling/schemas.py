"""Scheduling gate schemas."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from tutordesk.core.enums import BillingTypeEnum, GateDecisionEnum, GateOutcomeEnum
from tutordesk.modules.approvals.schemas import ApprovalRead
from tutordesk.modules.lessons.schemas import SessionInstanceRead


class SessionBookRequest(BaseModel):
    """Book a session slot.

    ``lesson_date``/``start_time`` are wall-clock values in the teacher's timezone.
    Learners may omit ``student_id``; it defaults to the caller.
    """

    student_id: UUID | None = None
    teacher_id: UUID | None = None
    course_id: UUID
    unit_id: UUID | None = None
    catalog_session_id: UUID | None = None
    title: str | None = Field(default=None, max_length=255)
    lesson_date: date
    start_time: time
    duration_hours: Decimal | None = Field(default=None, gt=0, max_digits=6, decimal_places=2)
    billing_type: BillingTypeEnum = BillingTypeEnum.CREDIT


class SessionCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class SessionRescheduleRequest(BaseModel):
    """Move a session to a new wall-clock slot; the duration is kept."""

    new_lesson_date: date
    new_start_time: time
    reason: str | None = Field(default=None, max_length=1000)


class GateResultRead(BaseModel):
    """What the gate did with a requested action."""

    outcome: GateOutcomeEnum
    decision: GateDecisionEnum
    session: SessionInstanceRead | None = None
    approval: ApprovalRead | None = None
