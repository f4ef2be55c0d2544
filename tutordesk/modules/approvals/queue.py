"""Enqueue side of the approval queue."""

from __future__ import annotations

import logging
from uuid import UUID

from tutordesk.modules.approvals.models import ApprovalRequest
from tutordesk.modules.approvals.payloads import ApprovalPayload, dump_payload
from tutordesk.modules.approvals.repository import ApprovalRepository
from tutordesk.modules.audit.repository import AuditRepository

logger = logging.getLogger(__name__)


def counter_parties(request: ApprovalRequest) -> list[UUID]:
    """Parties who are expected to decide on the request."""
    parties = [party for party in (request.student_id, request.teacher_id) if party is not None]
    return [party for party in parties if party != request.requested_by_id]


class ApprovalQueue:
    """Creates pending approval requests and announces them."""

    def __init__(
        self,
        repository: ApprovalRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.audit_repository = audit_repository

    async def enqueue(
        self,
        payload: ApprovalPayload,
        *,
        student_id: UUID,
        teacher_id: UUID | None,
        requested_by_id: UUID | None,
        reason: str | None = None,
        session_instance_id: UUID | None = None,
        package_id: UUID | None = None,
    ) -> ApprovalRequest:
        request = await self.repository.create_request(
            payload,
            student_id=student_id,
            teacher_id=teacher_id,
            requested_by_id=requested_by_id,
            reason=reason,
            session_instance_id=session_instance_id,
            package_id=package_id,
        )
        logger.info("Enqueued %s approval %s for learner %s", request.type, request.id, student_id)

        await self.audit_repository.create_audit_log(
            actor_id=requested_by_id,
            action="approvals.request.create",
            entity_type="approval_request",
            entity_id=str(request.id),
            payload={"type": str(request.type), "reason": reason, "details": dump_payload(payload)},
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="approvals",
            aggregate_id=str(request.id),
            event_type="approvals.request.created",
            payload={
                "request_id": str(request.id),
                "type": str(request.type),
                "student_id": str(student_id),
                "recipient_ids": [str(party) for party in counter_parties(request)],
            },
        )
        return request
