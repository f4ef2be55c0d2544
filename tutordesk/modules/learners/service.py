"""Learner lookups used by the scheduling engine."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from tutordesk.modules.learners.models import LearnerProfile, LearnerProgress
from tutordesk.modules.learners.repository import LearnersRepository
from tutordesk.modules.lessons.repository import LessonsRepository

logger = logging.getLogger(__name__)


class LearnersService:
    """Identity-side facts about learners: newness, teacher assignment, progress."""

    def __init__(
        self,
        repository: LearnersRepository,
        lessons_repository: LessonsRepository,
    ) -> None:
        self.repository = repository
        self.lessons_repository = lessons_repository

    async def is_new_learner(self, learner_id: UUID) -> bool:
        """A learner is new until their first session has been completed."""
        return await self.lessons_repository.count_completed_for_student(learner_id) == 0

    async def get_profile(self, learner_id: UUID) -> LearnerProfile | None:
        return await self.repository.get_profile(learner_id)

    async def teacher_of(self, learner_id: UUID) -> UUID | None:
        profile = await self.repository.get_profile(learner_id)
        return profile.teacher_id if profile is not None else None

    async def record_progress(
        self,
        learner_id: UUID,
        course_id: UUID,
        hours: Decimal,
        at: datetime,
    ) -> LearnerProgress:
        progress = await self.repository.add_progress(learner_id, course_id, hours, at)
        logger.info(
            "Progress for learner %s on course %s: %s sessions, %sh",
            learner_id,
            course_id,
            progress.sessions_completed,
            progress.hours_completed,
        )
        return progress
