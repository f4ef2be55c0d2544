"""Approval queue resolution."""

from __future__ import annotations

import logging
from typing import assert_never
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.database import get_db_session
from tutordesk.core.enums import ApprovalDecisionEnum, ApprovalStatusEnum, RoleEnum
from tutordesk.core.metrics import record_approval_resolution
from tutordesk.modules.approvals.models import ApprovalRequest
from tutordesk.modules.approvals.payloads import (
    ApprovalPayload,
    CancellationPayload,
    NewLearnerBookingPayload,
    PausePayload,
    ReschedulePayload,
)
from tutordesk.modules.approvals.repository import ApprovalRepository
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.identity.models import User
from tutordesk.modules.lessons.models import SessionInstance
from tutordesk.modules.packages.service import PackageService
from tutordesk.modules.scheduling.service import SchedulingGateService, build_scheduling_service
from tutordesk.shared.exceptions import (
    AlreadyResolvedException,
    NotFoundException,
    UnauthorizedException,
)
from tutordesk.shared.utils import utc_now

logger = logging.getLogger(__name__)


class ApprovalsService:
    """Resolves pending requests exactly once and applies the deferred change."""

    def __init__(
        self,
        repository: ApprovalRepository,
        scheduling_service: SchedulingGateService,
        package_service: PackageService,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.scheduling_service = scheduling_service
        self.package_service = package_service
        self.audit_repository = audit_repository

    def _ensure_can_resolve(self, request: ApprovalRequest, actor: User) -> None:
        """Admins, or a party to the request other than the one who raised it."""
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.id not in (request.student_id, request.teacher_id):
            raise UnauthorizedException("Only the counter-party can resolve this request")
        if actor.id == request.requested_by_id:
            raise UnauthorizedException("Requests cannot be resolved by their requester")

    async def get_request(self, request_id: UUID, actor: User) -> ApprovalRequest:
        request = await self.repository.get_by_id(request_id)
        if request is None:
            raise NotFoundException("Approval request not found")
        if actor.role.name != RoleEnum.ADMIN and actor.id not in (request.student_id, request.teacher_id):
            raise UnauthorizedException("Access denied")
        return request

    async def list_requests(
        self,
        actor: User,
        limit: int,
        offset: int,
        status: ApprovalStatusEnum | None = None,
    ) -> tuple[list[ApprovalRequest], int]:
        party_id = None if actor.role.name == RoleEnum.ADMIN else actor.id
        return await self.repository.list_requests(limit, offset, status=status, party_id=party_id)

    async def resolve(
        self,
        request_id: UUID,
        decision: ApprovalDecisionEnum,
        actor: User,
    ) -> ApprovalRequest:
        """Approve or reject a pending request; the first resolution wins."""
        request = await self.get_request(request_id, actor)
        self._ensure_can_resolve(request, actor)
        if request.status != ApprovalStatusEnum.PENDING:
            raise AlreadyResolvedException(str(request.status))

        if decision == ApprovalDecisionEnum.APPROVE:
            target = ApprovalStatusEnum.APPROVED
        else:
            target = ApprovalStatusEnum.REJECTED
        resolved = await self.repository.mark_resolved(request_id, target, actor.id, utc_now())
        if resolved is None:
            current = await self.repository.get_by_id(request_id)
            raise AlreadyResolvedException(str(current.status if current is not None else target))

        if target == ApprovalStatusEnum.APPROVED:
            await self._apply(resolved.details, actor.id)

        record_approval_resolution(str(resolved.type), str(decision))
        logger.info("Approval %s (%s) %s by %s", resolved.id, resolved.type, resolved.status, actor.id)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="approvals.request.resolve",
            entity_type="approval_request",
            entity_id=str(resolved.id),
            payload={"type": str(resolved.type), "status": str(resolved.status)},
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="approvals",
            aggregate_id=str(resolved.id),
            event_type="approvals.request.resolved",
            payload={
                "request_id": str(resolved.id),
                "type": str(resolved.type),
                "status": str(resolved.status),
                "student_id": str(resolved.student_id),
                "requested_by_id": str(resolved.requested_by_id) if resolved.requested_by_id else None,
            },
        )
        return resolved

    async def _apply(self, payload: ApprovalPayload, actor_id: UUID) -> None:
        match payload:
            case NewLearnerBookingPayload():
                await self.scheduling_service.create_booked_session(payload, actor_id=actor_id)
            case PausePayload(package_id=package_id, reason=reason):
                await self.package_service.apply_pause(package_id, reason, actor_id=actor_id)
            case CancellationPayload(session_instance_id=session_id, reason=reason):
                instance = await self._session(session_id)
                await self.scheduling_service.apply_cancellation(instance, reason, actor_id=actor_id)
            case ReschedulePayload(session_instance_id=session_id):
                instance = await self._session(session_id)
                await self.scheduling_service.apply_reschedule(
                    instance,
                    payload.new_lesson_date,
                    payload.new_start_time,
                    actor_id=actor_id,
                )
            case _:
                assert_never(payload)

    async def _session(self, session_id: UUID) -> SessionInstance:
        instance = await self.scheduling_service.lessons_repository.get_session(session_id, for_update=True)
        if instance is None:
            raise NotFoundException("Session not found")
        return instance


def build_approvals_service(session: AsyncSession) -> ApprovalsService:
    scheduling_service = build_scheduling_service(session)
    return ApprovalsService(
        repository=scheduling_service.approval_queue.repository,
        scheduling_service=scheduling_service,
        package_service=scheduling_service.package_service,
        audit_repository=scheduling_service.audit_repository,
    )


async def get_approvals_service(session: AsyncSession = Depends(get_db_session)) -> ApprovalsService:
    """Dependency provider for approvals service."""
    return build_approvals_service(session)
