"""Learner repository layer."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.modules.learners.models import LearnerProfile, LearnerProgress


class LearnersRepository:
    """DB operations for learner profiles and progress."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_profile(self, user_id: UUID) -> LearnerProfile | None:
        stmt = select(LearnerProfile).where(LearnerProfile.user_id == user_id)
        return await self.session.scalar(stmt)

    async def list_profiles(self, teacher_id: UUID | None = None) -> list[LearnerProfile]:
        """Learners of one teacher, or everyone when teacher_id is None."""
        stmt = select(LearnerProfile)
        if teacher_id is not None:
            stmt = stmt.where(LearnerProfile.teacher_id == teacher_id)
        stmt = stmt.order_by(LearnerProfile.created_at.asc())
        return (await self.session.scalars(stmt)).all()

    async def list_teacher_ids(self) -> list[UUID]:
        stmt = (
            select(LearnerProfile.teacher_id)
            .where(LearnerProfile.teacher_id.is_not(None))
            .distinct()
        )
        return (await self.session.scalars(stmt)).all()

    async def list_progress(self, student_ids: list[UUID]) -> list[LearnerProgress]:
        if not student_ids:
            return []
        stmt = select(LearnerProgress).where(LearnerProgress.student_id.in_(student_ids))
        return (await self.session.scalars(stmt)).all()

    async def add_progress(
        self,
        student_id: UUID,
        course_id: UUID,
        hours: Decimal,
        at: datetime,
    ) -> LearnerProgress:
        """Add one completed session to the learner's course totals."""
        stmt = insert(LearnerProgress).values(
            student_id=student_id,
            course_id=course_id,
            hours_completed=hours,
            sessions_completed=1,
            last_activity_at=at,
            created_at=at,
            updated_at=at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["student_id", "course_id"],
            set_={
                "hours_completed": LearnerProgress.hours_completed + hours,
                "sessions_completed": LearnerProgress.sessions_completed + 1,
                "last_activity_at": at,
                "updated_at": at,
            },
        ).returning(LearnerProgress)
        return await self.session.scalar(stmt.execution_options(populate_existing=True))
