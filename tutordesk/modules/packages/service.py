"""Hour package business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import RoleEnum
from tutordesk.core.metrics import record_gate_decision
from tutordesk.modules.approvals.models import ApprovalRequest
from tutordesk.modules.approvals.payloads import PausePayload
from tutordesk.modules.approvals.queue import ApprovalQueue
from tutordesk.modules.approvals.repository import ApprovalRepository
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.credits.repository import CreditLedgerRepository
from tutordesk.modules.credits.service import CreditLedgerService
from tutordesk.modules.identity.models import User
from tutordesk.modules.learners.repository import LearnersRepository
from tutordesk.modules.packages.lifecycle import (
    TERMINAL_STATES,
    Active,
    Completed,
    Expired,
    Paused,
    can_pause,
    days_between,
    get_max_pauses,
    pauses_remaining,
)
from tutordesk.modules.packages.models import HourPackage
from tutordesk.modules.packages.repository import PackageRepository
from tutordesk.modules.packages.schemas import CompletedPaymentEvent
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    PauseQuotaExceededException,
    UnauthorizedException,
)
from tutordesk.shared.utils import ensure_utc, to_hours, utc_now

logger = logging.getLogger(__name__)

settings = get_settings()


@dataclass(frozen=True)
class FundingSource:
    """Where the hours of a credit booking are reserved."""

    ledger_id: UUID
    package: HourPackage | None


class PackageService:
    """Package lifecycle: purchase, pause, unpause, consumption and expiry."""

    def __init__(
        self,
        repository: PackageRepository,
        credit_service: CreditLedgerService,
        approval_queue: ApprovalQueue,
        learners_repository: LearnersRepository,
        audit_repository: AuditRepository,
    ) -> None:
        self.repository = repository
        self.credit_service = credit_service
        self.approval_queue = approval_queue
        self.learners_repository = learners_repository
        self.audit_repository = audit_repository

    async def _ensure_party(self, student_id: UUID, actor: User) -> None:
        """Allow admins, the learner and the learner's teacher."""
        if actor.role.name == RoleEnum.ADMIN or actor.id == student_id:
            return
        if actor.role.name == RoleEnum.TEACHER:
            profile = await self.learners_repository.get_profile(student_id)
            if profile is not None and profile.teacher_id == actor.id:
                return
        raise UnauthorizedException("Access denied")

    async def _get_package(self, package_id: UUID, *, for_update: bool = False) -> HourPackage:
        package = await self.repository.get_by_id(package_id, for_update=for_update)
        if package is None:
            raise NotFoundException("Package not found")
        return package

    async def _emit(
        self,
        package: HourPackage,
        event: str,
        actor_id: UUID | None,
        **extra,
    ) -> None:
        payload = {
            "package_id": str(package.id),
            "student_id": str(package.student_id),
            "status": str(package.status),
            **extra,
        }
        await self.audit_repository.create_audit_log(
            actor_id=actor_id,
            action=f"packages.package.{event}",
            entity_type="hour_package",
            entity_id=str(package.id),
            payload=payload,
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="packages",
            aggregate_id=str(package.id),
            event_type=f"packages.package.{event}",
            payload=payload,
        )

    async def handle_completed_payment(self, event: CompletedPaymentEvent, actor: User) -> HourPackage:
        """Grant purchased hours and open the package that funds them."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin or the payment integration can record payments")

        if event.external_reference:
            existing = await self.repository.get_by_external_reference(event.external_reference)
            if existing is not None:
                logger.info("Payment %s already recorded as package %s", event.external_reference, existing.id)
                return existing

        now = utc_now()
        if event.expires_at is not None:
            expires_at = ensure_utc(event.expires_at)
        else:
            expires_at = now + timedelta(days=settings.package_expiry_days)
        if expires_at <= now:
            raise BusinessRuleException("Package expiration must be in the future")

        hours = to_hours(event.hours)
        ledger = await self.credit_service.open_or_grant(
            event.student_id,
            event.course_id,
            hours,
            event.currency,
            actor_id=actor.id,
        )
        package = await self.repository.create_package(
            student_id=event.student_id,
            course_id=event.course_id,
            ledger_id=ledger.id,
            total_hours=hours,
            price=event.price,
            currency=event.currency,
            purchase_date=now,
            expires_at=expires_at,
            external_reference=event.external_reference,
        )
        await self._emit(
            package,
            "created",
            actor.id,
            total_hours=str(package.total_hours),
            expires_at=package.expires_at.isoformat(),
        )
        return package

    async def list_student_packages(
        self,
        student_id: UUID,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[HourPackage], int]:
        await self._ensure_party(student_id, actor)
        return await self.repository.list_by_student(student_id, limit=limit, offset=offset)

    async def request_pause(
        self,
        package_id: UUID,
        reason: str,
        actor: User,
        override: bool = False,
    ) -> ApprovalRequest:
        """Ask the counter-party to pause the package. Never pauses directly."""
        package = await self._get_package(package_id)
        await self._ensure_party(package.student_id, actor)

        if override and actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can override the pause quota")

        if not can_pause(package, settings.hours_per_pause):
            if not override:
                raise PauseQuotaExceededException(
                    pauses_remaining=pauses_remaining(package, settings.hours_per_pause),
                    max_pauses=get_max_pauses(package.total_hours, settings.hours_per_pause),
                )
            if not isinstance(package.state, Active):
                raise BusinessRuleException("Only active packages can be paused")
            logger.info("Admin %s overrides pause quota for package %s", actor.id, package.id)

        if await self.approval_queue.repository.get_pending_for_package(package.id) is not None:
            raise ConflictException("A pause request for this package is already pending")

        record_gate_decision("pause", "deferred")
        return await self.approval_queue.enqueue(
            PausePayload(package_id=package.id, reason=reason),
            student_id=package.student_id,
            teacher_id=await self._teacher_of(package.student_id),
            requested_by_id=actor.id,
            reason=reason,
            package_id=package.id,
        )

    async def _teacher_of(self, student_id: UUID) -> UUID | None:
        profile = await self.learners_repository.get_profile(student_id)
        return profile.teacher_id if profile is not None else None

    async def apply_pause(self, package_id: UUID, reason: str, actor_id: UUID | None = None) -> HourPackage:
        """Pause an active package; runs when a pause request is approved."""
        package = await self._get_package(package_id, for_update=True)
        if not isinstance(package.state, Active):
            raise BusinessRuleException(f"Package is {package.status} and cannot be paused")

        package.state = Paused(since=utc_now(), reason=reason)
        package.pause_count += 1
        await self.repository.save(package)
        logger.info(
            "Package %s paused (%s of %s pauses used)",
            package.id,
            package.pause_count,
            get_max_pauses(package.total_hours, settings.hours_per_pause),
        )
        await self._emit(package, "paused", actor_id, pause_count=package.pause_count, reason=reason)
        return package

    async def unpause(self, package_id: UUID, actor: User) -> HourPackage:
        """Resume a paused package, pushing its expiry back by the days spent paused."""
        package = await self._get_package(package_id, for_update=True)
        await self._ensure_party(package.student_id, actor)

        state = package.state
        if not isinstance(state, Paused):
            raise BusinessRuleException("Package is not paused")

        days = days_between(state.since, utc_now())
        package.state = Active()
        package.total_days_paused += days
        package.expires_at = package.expires_at + timedelta(days=days)
        await self.repository.save(package)
        await self._emit(
            package,
            "unpaused",
            actor.id,
            days_extended=days,
            expires_at=package.expires_at.isoformat(),
        )
        return package

    async def select_funding(self, student_id: UUID, course_id: UUID, hours: Decimal) -> FundingSource:
        """Pick the ledger, and the package if one has room, for a new credit reservation.

        Packages are tried soonest expiry first; a package qualifies when its
        remaining hours minus the hours held by its active sessions cover ``hours``.
        When none does, the reservation falls back to the course ledger alone
        (hours granted outside any package).
        """
        now = utc_now()
        candidates = await self.repository.list_open_for_course(student_id, course_id)

        bookable = []
        paused = False
        for package in candidates:
            if isinstance(package.state, Paused):
                paused = True
            elif ensure_utc(package.expires_at) <= now:
                await self._expire(package, actor_id=None)
            else:
                bookable.append(package)

        if bookable:
            needed = to_hours(hours)
            held = await self.repository.held_hours_by_package([package.id for package in bookable])
            for package in bookable:
                if package.hours_remaining - held.get(package.id, Decimal("0")) >= needed:
                    return FundingSource(ledger_id=package.ledger_id, package=package)
            logger.info(
                "No package of learner %s has %sh free for course %s; reserving against the ledger only",
                student_id,
                needed,
                course_id,
            )
            return FundingSource(ledger_id=bookable[0].ledger_id, package=None)
        if paused:
            raise BusinessRuleException("Package is paused")
        raise BusinessRuleException("No active package for this course")

    async def record_consumption(self, package_id: UUID, hours: Decimal) -> HourPackage:
        """Deduct completed hours; the package completes when nothing is left."""
        package = await self._get_package(package_id, for_update=True)
        if isinstance(package.state, TERMINAL_STATES):
            logger.warning(
                "Session hours completed against %s package %s; package left unchanged",
                package.status,
                package.id,
            )
            return package

        consumed = min(to_hours(hours), package.hours_remaining)
        package.hours_remaining = package.hours_remaining - consumed
        if package.hours_remaining <= 0:
            package.state = Completed(at=utc_now())
        await self.repository.save(package)

        if isinstance(package.state, Completed):
            await self._emit(package, "completed", None)
        return package

    async def _expire(self, package: HourPackage, actor_id: UUID | None) -> None:
        package.state = Expired()
        await self.repository.save(package)
        logger.info("Package %s expired at %s", package.id, package.expires_at.isoformat())
        await self._emit(package, "expired", actor_id, expires_at=package.expires_at.isoformat())

    async def expire_packages(self, actor: User) -> int:
        """Expire all active packages past their expiry. Paused clocks are stopped."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can expire packages")

        packages = await self.repository.find_packages_to_expire(utc_now())
        for package in packages:
            await self._expire(package, actor_id=actor.id)
        return len(packages)


def build_package_service(session: AsyncSession) -> PackageService:
    audit_repository = AuditRepository(session)
    return PackageService(
        repository=PackageRepository(session),
        credit_service=CreditLedgerService(CreditLedgerRepository(session), audit_repository),
        approval_queue=ApprovalQueue(ApprovalRepository(session), audit_repository),
        learners_repository=LearnersRepository(session),
        audit_repository=audit_repository,
    )


async def get_package_service(session: AsyncSession = Depends(get_db_session)) -> PackageService:
    """Dependency provider for package service."""
    return build_package_service(session)
