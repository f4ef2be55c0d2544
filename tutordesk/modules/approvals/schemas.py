"""Approval request schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tutordesk.core.enums import ApprovalDecisionEnum, ApprovalStatusEnum, ApprovalTypeEnum
from tutordesk.modules.approvals.payloads import ApprovalPayload


class ApprovalResolve(BaseModel):
    """Counter-party decision on a pending request."""

    decision: ApprovalDecisionEnum


class ApprovalRead(BaseModel):
    """Approval request response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: ApprovalTypeEnum
    status: ApprovalStatusEnum
    details: ApprovalPayload | None
    reason: str | None
    student_id: UUID
    teacher_id: UUID | None
    session_instance_id: UUID | None
    package_id: UUID | None
    requested_by_id: UUID | None
    resolved_at: datetime | None
    resolved_by_id: UUID | None
    created_at: datetime
