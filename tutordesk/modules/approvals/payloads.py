"""Approval payload variants, one per request kind."""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from tutordesk.core.enums import ApprovalTypeEnum, BillingTypeEnum


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class NewLearnerBookingPayload(_Payload):
    """Everything needed to create the session once the first booking is approved."""

    kind: Literal[ApprovalTypeEnum.NEW_STUDENT_BOOKING] = ApprovalTypeEnum.NEW_STUDENT_BOOKING
    student_id: UUID
    teacher_id: UUID
    course_id: UUID
    unit_id: UUID | None = None
    catalog_session_id: UUID | None = None
    title: str | None = None
    lesson_date: date
    start_time: time
    end_time: time
    duration_hours: Decimal
    billing_type: BillingTypeEnum


class PausePayload(_Payload):
    kind: Literal[ApprovalTypeEnum.PAUSE_REQUEST] = ApprovalTypeEnum.PAUSE_REQUEST
    package_id: UUID
    reason: str


class CancellationPayload(_Payload):
    kind: Literal[ApprovalTypeEnum.CANCELLATION] = ApprovalTypeEnum.CANCELLATION
    session_instance_id: UUID
    reason: str | None = None


class ReschedulePayload(_Payload):
    kind: Literal[ApprovalTypeEnum.RESCHEDULE] = ApprovalTypeEnum.RESCHEDULE
    session_instance_id: UUID
    new_lesson_date: date
    new_start_time: time


ApprovalPayload = Annotated[
    NewLearnerBookingPayload | PausePayload | CancellationPayload | ReschedulePayload,
    Field(discriminator="kind"),
]

payload_adapter: TypeAdapter[ApprovalPayload] = TypeAdapter(ApprovalPayload)


def load_payload(raw: dict) -> ApprovalPayload:
    return payload_adapter.validate_python(raw)


def dump_payload(payload: ApprovalPayload) -> dict:
    return payload.model_dump(mode="json")
