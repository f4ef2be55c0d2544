"""Scheduling gate business logic layer.

Every action either applies in full or enqueues an approval request. Nothing is
caught and compensated here: a failing ledger call propagates and the request
transaction rolls back, so no session, approval or reservation is left behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import (
    BillingTypeEnum,
    GateDecisionEnum,
    GateOutcomeEnum,
    RoleEnum,
    SessionStatusEnum,
)
from tutordesk.core.metrics import record_gate_decision
from tutordesk.modules.approvals.models import ApprovalRequest
from tutordesk.modules.approvals.payloads import (
    CancellationPayload,
    NewLearnerBookingPayload,
    ReschedulePayload,
)
from tutordesk.modules.approvals.queue import ApprovalQueue
from tutordesk.modules.approvals.repository import ApprovalRepository
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.catalog.repository import CatalogRepository
from tutordesk.modules.credits.service import CreditLedgerService
from tutordesk.modules.identity.models import User
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.learners.repository import LearnersRepository
from tutordesk.modules.learners.service import LearnersService
from tutordesk.modules.lessons.models import SessionInstance
from tutordesk.modules.lessons.repository import LessonsRepository
from tutordesk.modules.packages.service import PackageService, build_package_service
from tutordesk.modules.scheduling.gate import (
    decide_booking,
    decide_cancel,
    decide_reschedule,
    hours_until_session,
    slot_instants,
)
from tutordesk.modules.scheduling.schemas import (
    SessionBookRequest,
    SessionCancelRequest,
    SessionRescheduleRequest,
)
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from tutordesk.shared.utils import resolve_zone, to_hours, utc_now

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass
class GateResult:
    outcome: GateOutcomeEnum
    decision: GateDecisionEnum
    session: SessionInstance | None = None
    approval: ApprovalRequest | None = None


class SchedulingGateService:
    """Book, cancel, reschedule and complete sessions behind the approval gate."""

    def __init__(
        self,
        lessons_repository: LessonsRepository,
        credit_service: CreditLedgerService,
        package_service: PackageService,
        learners_service: LearnersService,
        catalog_repository: CatalogRepository,
        identity_repository: IdentityRepository,
        approval_queue: ApprovalQueue,
        audit_repository: AuditRepository,
    ) -> None:
        self.lessons_repository = lessons_repository
        self.credit_service = credit_service
        self.package_service = package_service
        self.learners_service = learners_service
        self.catalog_repository = catalog_repository
        self.identity_repository = identity_repository
        self.approval_queue = approval_queue
        self.audit_repository = audit_repository

    def _validate_actor_access(self, instance: SessionInstance, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.LEARNER and instance.student_id == actor.id:
            return
        if actor.role.name == RoleEnum.TEACHER and instance.teacher_id == actor.id:
            return
        raise UnauthorizedException("Access denied for this session")

    async def _get_active_session(self, session_id: UUID, actor: User) -> SessionInstance:
        instance = await self.lessons_repository.get_session(session_id, for_update=True)
        if instance is None:
            raise NotFoundException("Session not found")
        self._validate_actor_access(instance, actor)
        if not instance.is_active:
            raise BusinessRuleException(f"Session is {instance.status}")
        return instance

    async def _ensure_no_pending_change(self, instance: SessionInstance) -> None:
        pending = await self.approval_queue.repository.get_pending_for_session(instance.id)
        if pending is not None:
            raise ConflictException(f"A {pending.type} request for this session is already pending")

    async def _teacher_zone(self, teacher_id: UUID) -> ZoneInfo:
        return resolve_zone(await self.identity_repository.get_timezone(teacher_id), settings.schedule_timezone)

    async def _emit(self, instance: SessionInstance, event: str, actor_id: UUID | None, **extra) -> None:
        payload = {
            "session_id": str(instance.id),
            "student_id": str(instance.student_id),
            "teacher_id": str(instance.teacher_id),
            "status": str(instance.status),
            "starts_at": instance.starts_at.isoformat(),
            **extra,
        }
        await self.audit_repository.create_audit_log(
            actor_id=actor_id,
            action=f"scheduling.session.{event}",
            entity_type="session_instance",
            entity_id=str(instance.id),
            payload=payload,
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="scheduling",
            aggregate_id=str(instance.id),
            event_type=f"scheduling.session.{event}",
            payload=payload,
        )

    async def _resolve_booking(self, payload: SessionBookRequest, actor: User) -> NewLearnerBookingPayload:
        student_id = payload.student_id
        if actor.role.name == RoleEnum.LEARNER:
            if student_id is not None and student_id != actor.id:
                raise UnauthorizedException("Learners can book only their own sessions")
            student_id = actor.id
        if student_id is None:
            raise BusinessRuleException("student_id is required")

        profile = await self.learners_service.get_profile(student_id)
        teacher_id = payload.teacher_id or (profile.teacher_id if profile is not None else None)
        if actor.role.name == RoleEnum.TEACHER:
            if teacher_id is not None and teacher_id != actor.id:
                raise UnauthorizedException("Teachers can book only their own sessions")
            teacher_id = actor.id
        if teacher_id is None:
            raise BusinessRuleException("Learner has no assigned teacher")

        title = payload.title
        duration = payload.duration_hours
        if payload.catalog_session_id is not None:
            catalog_session = await self.catalog_repository.get_session(payload.catalog_session_id)
            if catalog_session is None:
                raise NotFoundException("Catalog session not found")
            title = title or catalog_session.title
            duration = duration or catalog_session.estimated_hours
        if duration is None:
            raise BusinessRuleException("duration_hours is required when no catalog session is given")

        zone = await self._teacher_zone(teacher_id)
        _, _, end_time = slot_instants(payload.lesson_date, payload.start_time, duration, zone)
        return NewLearnerBookingPayload(
            student_id=student_id,
            teacher_id=teacher_id,
            course_id=payload.course_id,
            unit_id=payload.unit_id,
            catalog_session_id=payload.catalog_session_id,
            title=title,
            lesson_date=payload.lesson_date,
            start_time=payload.start_time,
            end_time=end_time,
            duration_hours=to_hours(duration),
            billing_type=payload.billing_type,
        )

    async def book_session(self, payload: SessionBookRequest, actor: User) -> GateResult:
        """Book directly for returning learners; queue the first booking of a new learner."""
        details = await self._resolve_booking(payload, actor)
        zone = await self._teacher_zone(details.teacher_id)
        starts_at, _, _ = slot_instants(details.lesson_date, details.start_time, details.duration_hours, zone)
        if starts_at <= utc_now():
            raise BusinessRuleException("Cannot book a session in the past")

        decision = decide_booking(await self.learners_service.is_new_learner(details.student_id))
        record_gate_decision("book", decision)

        if decision == GateDecisionEnum.DEFERRED:
            logger.info("First booking of learner %s deferred for approval", details.student_id)
            approval = await self.approval_queue.enqueue(
                details,
                student_id=details.student_id,
                teacher_id=details.teacher_id,
                requested_by_id=actor.id,
            )
            return GateResult(GateOutcomeEnum.PENDING_APPROVAL, decision, approval=approval)

        instance = await self.create_booked_session(details, actor_id=actor.id)
        return GateResult(GateOutcomeEnum.APPLIED, decision, session=instance)

    async def create_booked_session(
        self,
        details: NewLearnerBookingPayload,
        actor_id: UUID | None,
    ) -> SessionInstance:
        """Reserve credit (for credit billing) and create the scheduled session."""
        zone = await self._teacher_zone(details.teacher_id)
        starts_at, ends_at, end_time = slot_instants(
            details.lesson_date,
            details.start_time,
            details.duration_hours,
            zone,
        )
        if starts_at <= utc_now():
            raise BusinessRuleException("Session slot is already in the past")

        ledger_id = None
        package_id = None
        if details.billing_type == BillingTypeEnum.CREDIT:
            funding = await self.package_service.select_funding(
                details.student_id,
                details.course_id,
                details.duration_hours,
            )
            await self.credit_service.reserve(funding.ledger_id, details.duration_hours, actor_id=actor_id)
            ledger_id = funding.ledger_id
            package_id = funding.package.id if funding.package is not None else None

        instance = await self.lessons_repository.create_session(
            student_id=details.student_id,
            teacher_id=details.teacher_id,
            course_id=details.course_id,
            unit_id=details.unit_id,
            catalog_session_id=details.catalog_session_id,
            title=details.title,
            lesson_date=details.lesson_date,
            start_time=details.start_time,
            end_time=end_time,
            starts_at=starts_at,
            ends_at=ends_at,
            duration_hours=details.duration_hours,
            billing_type=details.billing_type,
            ledger_id=ledger_id,
            package_id=package_id,
        )
        await self._emit(instance, "booked", actor_id, billing_type=str(instance.billing_type))
        return instance

    async def cancel_session(self, session_id: UUID, payload: SessionCancelRequest, actor: User) -> GateResult:
        """Cancel outside the window, otherwise ask the counter-party."""
        instance = await self._get_active_session(session_id, actor)
        await self._ensure_no_pending_change(instance)

        hours = hours_until_session(instance.starts_at, utc_now())
        decision = decide_cancel(hours, settings.cancel_approval_window_hours)
        record_gate_decision("cancel", decision)

        if decision == GateDecisionEnum.DEFERRED:
            logger.info("Cancellation of session %s deferred (%.2fh before start)", instance.id, hours)
            approval = await self.approval_queue.enqueue(
                CancellationPayload(session_instance_id=instance.id, reason=payload.reason),
                student_id=instance.student_id,
                teacher_id=instance.teacher_id,
                requested_by_id=actor.id,
                reason=payload.reason,
                session_instance_id=instance.id,
            )
            return GateResult(GateOutcomeEnum.PENDING_APPROVAL, decision, session=instance, approval=approval)

        await self.apply_cancellation(instance, payload.reason, actor_id=actor.id)
        return GateResult(GateOutcomeEnum.APPLIED, decision, session=instance)

    async def apply_cancellation(
        self,
        instance: SessionInstance,
        reason: str | None,
        actor_id: UUID | None,
    ) -> SessionInstance:
        """Cancel an active session and return its committed hours."""
        if not instance.is_active:
            raise BusinessRuleException(f"Session is {instance.status}")

        if instance.holds_credit:
            await self.credit_service.release(instance.ledger_id, instance.duration_hours, actor_id=actor_id)

        instance.status = SessionStatusEnum.CANCELLED
        instance.cancelled_at = utc_now()
        instance.cancellation_reason = reason
        await self.lessons_repository.save(instance)
        await self._emit(instance, "cancelled", actor_id, reason=reason)
        return instance

    async def reschedule_session(
        self,
        session_id: UUID,
        payload: SessionRescheduleRequest,
        actor: User,
    ) -> GateResult:
        """Move outside the window, otherwise ask the counter-party."""
        instance = await self._get_active_session(session_id, actor)
        await self._ensure_no_pending_change(instance)

        now = utc_now()
        zone = await self._teacher_zone(instance.teacher_id)
        new_starts_at, _, _ = slot_instants(
            payload.new_lesson_date,
            payload.new_start_time,
            instance.duration_hours,
            zone,
        )
        if new_starts_at <= now:
            raise BusinessRuleException("Cannot reschedule into the past")

        hours = hours_until_session(instance.starts_at, now)
        decision = decide_reschedule(hours, settings.reschedule_approval_window_hours)
        record_gate_decision("reschedule", decision)

        if decision == GateDecisionEnum.DEFERRED:
            logger.info("Reschedule of session %s deferred (%.2fh before start)", instance.id, hours)
            approval = await self.approval_queue.enqueue(
                ReschedulePayload(
                    session_instance_id=instance.id,
                    new_lesson_date=payload.new_lesson_date,
                    new_start_time=payload.new_start_time,
                ),
                student_id=instance.student_id,
                teacher_id=instance.teacher_id,
                requested_by_id=actor.id,
                reason=payload.reason,
                session_instance_id=instance.id,
            )
            return GateResult(GateOutcomeEnum.PENDING_APPROVAL, decision, session=instance, approval=approval)

        await self.apply_reschedule(instance, payload.new_lesson_date, payload.new_start_time, actor_id=actor.id)
        return GateResult(GateOutcomeEnum.APPLIED, decision, session=instance)

    async def apply_reschedule(
        self,
        instance: SessionInstance,
        new_lesson_date: date,
        new_start_time: time,
        actor_id: UUID | None,
    ) -> SessionInstance:
        """Move an active session in place, keeping its duration and its reservation."""
        if not instance.is_active:
            raise BusinessRuleException(f"Session is {instance.status}")

        zone = await self._teacher_zone(instance.teacher_id)
        starts_at, ends_at, end_time = slot_instants(new_lesson_date, new_start_time, instance.duration_hours, zone)
        previous_starts_at = instance.starts_at

        instance.lesson_date = new_lesson_date
        instance.start_time = new_start_time
        instance.end_time = end_time
        instance.starts_at = starts_at
        instance.ends_at = ends_at
        instance.status = SessionStatusEnum.RESCHEDULED
        await self.lessons_repository.save(instance)
        await self._emit(instance, "rescheduled", actor_id, previous_starts_at=previous_starts_at.isoformat())
        return instance

    async def complete_session(self, session_id: UUID, actor: User) -> SessionInstance:
        """Mark a session as taught: settle hours, consume the package, record progress."""
        if actor.role.name not in (RoleEnum.ADMIN, RoleEnum.TEACHER):
            raise UnauthorizedException("Only admin or teacher can complete sessions")

        instance = await self.lessons_repository.get_session(session_id, for_update=True)
        if instance is None:
            raise NotFoundException("Session not found")
        self._validate_actor_access(instance, actor)

        if instance.status == SessionStatusEnum.COMPLETED:
            return instance
        if instance.status == SessionStatusEnum.CANCELLED:
            raise BusinessRuleException("Cancelled session cannot be completed")

        now = utc_now()
        hours: Decimal = instance.duration_hours
        if instance.holds_credit:
            await self.credit_service.settle(instance.ledger_id, hours, actor_id=actor.id)
            if instance.package_id is not None:
                await self.package_service.record_consumption(instance.package_id, hours)

        instance.status = SessionStatusEnum.COMPLETED
        instance.completed_at = now
        await self.lessons_repository.save(instance)
        await self.learners_service.record_progress(instance.student_id, instance.course_id, hours, now)
        await self._emit(instance, "completed", actor.id, hours=str(hours))
        return instance

    async def list_sessions(
        self,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[SessionInstance], int]:
        """List sessions for actor according to role."""
        return await self.lessons_repository.list_sessions_for_user(actor.id, actor.role.name, limit, offset)


def build_scheduling_service(session: AsyncSession) -> SchedulingGateService:
    package_service = build_package_service(session)
    lessons_repository = LessonsRepository(session)
    audit_repository = AuditRepository(session)
    return SchedulingGateService(
        lessons_repository=lessons_repository,
        credit_service=package_service.credit_service,
        package_service=package_service,
        learners_service=LearnersService(LearnersRepository(session), lessons_repository),
        catalog_repository=CatalogRepository(session),
        identity_repository=IdentityRepository(session),
        approval_queue=ApprovalQueue(ApprovalRepository(session), audit_repository),
        audit_repository=audit_repository,
    )


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingGateService:
    """Dependency provider for the scheduling gate."""
    return build_scheduling_service(session)
