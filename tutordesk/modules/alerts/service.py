"""Alert feed loading."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import AlertLevelEnum, RoleEnum
from tutordesk.modules.alerts.engine import (
    Alert,
    AlertSnapshot,
    AlertThresholds,
    generate_learner_alerts,
    generate_teacher_alerts,
)
from tutordesk.modules.approvals.repository import ApprovalRepository
from tutordesk.modules.credits.repository import CreditLedgerRepository
from tutordesk.modules.identity.models import User
from tutordesk.modules.learners.repository import LearnersRepository
from tutordesk.modules.lessons.repository import LessonsRepository
from tutordesk.modules.packages.repository import PackageRepository
from tutordesk.shared.exceptions import BusinessRuleException, UnauthorizedException
from tutordesk.shared.utils import to_hours, utc_now

settings = get_settings()

SUMMARY_LEVELS = frozenset({AlertLevelEnum.RED, AlertLevelEnum.YELLOW})


def thresholds_from_settings() -> AlertThresholds:
    return AlertThresholds(
        expiring_within_days=settings.alert_expiring_within_days,
        low_hours=to_hours(settings.alert_low_hours_threshold),
        recent_cancellation_days=settings.alert_recent_cancellation_days,
    )


class AlertsService:
    """Builds snapshots from the database and runs the alert rules over them."""

    def __init__(
        self,
        learners_repository: LearnersRepository,
        package_repository: PackageRepository,
        ledger_repository: CreditLedgerRepository,
        lessons_repository: LessonsRepository,
        approval_repository: ApprovalRepository,
    ) -> None:
        self.learners_repository = learners_repository
        self.package_repository = package_repository
        self.ledger_repository = ledger_repository
        self.lessons_repository = lessons_repository
        self.approval_repository = approval_repository

    async def load_snapshot(self, learners: list, student_ids: list[UUID] | None = None) -> AlertSnapshot:
        if student_ids is None:
            student_ids = [learner.user_id for learner in learners]
        return AlertSnapshot(
            now=utc_now(),
            learners=tuple(learners),
            packages=tuple(await self.package_repository.list_for_students(student_ids)),
            ledgers=tuple(await self.ledger_repository.list_for_students(student_ids)),
            sessions=tuple(await self.lessons_repository.list_for_students(student_ids)),
            approvals=tuple(await self.approval_repository.list_pending_for_students(student_ids)),
            progress=tuple(await self.learners_repository.list_progress(student_ids)),
            thresholds=thresholds_from_settings(),
        )

    async def teacher_alerts(self, actor: User, teacher_id: UUID | None = None) -> list[Alert]:
        """Alerts over a teacher's learners; admins see everyone unless teacher_id is given."""
        if actor.role.name == RoleEnum.TEACHER:
            teacher_id = actor.id
        elif actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only teachers and admins have a teacher feed")
        learners = await self.learners_repository.list_profiles(teacher_id)
        return generate_teacher_alerts(await self.load_snapshot(learners))

    async def learner_alerts(self, actor: User, student_id: UUID | None = None) -> list[Alert]:
        if actor.role.name == RoleEnum.LEARNER:
            if student_id is not None and student_id != actor.id:
                raise UnauthorizedException("Learners can see only their own alerts")
            student_id = actor.id
        if student_id is None:
            raise BusinessRuleException("student_id is required")

        profile = await self.learners_repository.get_profile(student_id)
        if actor.role.name == RoleEnum.TEACHER and (profile is None or profile.teacher_id != actor.id):
            raise UnauthorizedException("Learner is not assigned to current teacher")

        learners = [profile] if profile is not None else []
        snapshot = await self.load_snapshot(learners, [student_id])
        return generate_learner_alerts(snapshot, student_id)

    async def daily_summary(self, teacher_id: UUID) -> list[Alert]:
        """Red and yellow alerts for one teacher, for the daily digest."""
        learners = await self.learners_repository.list_profiles(teacher_id)
        alerts = generate_teacher_alerts(await self.load_snapshot(learners))
        return [alert for alert in alerts if alert.level in SUMMARY_LEVELS]


def build_alerts_service(session: AsyncSession) -> AlertsService:
    return AlertsService(
        learners_repository=LearnersRepository(session),
        package_repository=PackageRepository(session),
        ledger_repository=CreditLedgerRepository(session),
        lessons_repository=LessonsRepository(session),
        approval_repository=ApprovalRepository(session),
    )


async def get_alerts_service(session: AsyncSession = Depends(get_db_session)) -> AlertsService:
    """Dependency provider for alerts service."""
    return build_alerts_service(session)
