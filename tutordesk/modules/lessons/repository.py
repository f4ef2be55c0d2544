"""Session instance repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import RoleEnum, SessionStatusEnum
from tutordesk.modules.lessons.models import SessionInstance


class LessonsRepository:
    """DB operations for session instances."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_session(self, **values) -> SessionInstance:
        instance = SessionInstance(status=SessionStatusEnum.SCHEDULED, **values)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def get_session(self, session_id: UUID, *, for_update: bool = False) -> SessionInstance | None:
        stmt = select(SessionInstance).where(SessionInstance.id == session_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    async def list_sessions_for_user(
        self,
        user_id: UUID,
        role_name: RoleEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[SessionInstance], int]:
        base_stmt: Select[tuple[SessionInstance]] = select(SessionInstance)

        if role_name == RoleEnum.LEARNER:
            base_stmt = base_stmt.where(SessionInstance.student_id == user_id)
        elif role_name == RoleEnum.TEACHER:
            base_stmt = base_stmt.where(SessionInstance.teacher_id == user_id)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(SessionInstance.starts_at.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_for_students(self, student_ids: list[UUID]) -> list[SessionInstance]:
        if not student_ids:
            return []
        stmt = (
            select(SessionInstance)
            .where(SessionInstance.student_id.in_(student_ids))
            .order_by(SessionInstance.starts_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def count_completed_for_student(self, student_id: UUID) -> int:
        stmt = select(func.count(SessionInstance.id)).where(
            SessionInstance.student_id == student_id,
            SessionInstance.status == SessionStatusEnum.COMPLETED,
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def save(self, instance: SessionInstance) -> SessionInstance:
        await self.session.flush()
        return instance
