"""Learner profile and progress ORM models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin, enum_values, hours_column
from tutordesk.core.enums import LearnerStatusEnum


class LearnerProfile(BaseModelMixin, Base):
    """Learner record as seen by the assigned teacher."""

    __tablename__ = "learner_profiles"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    teacher_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    birthday: Mapped[date | None] = mapped_column(Date, nullable=True)
    gender: Mapped[str | None] = mapped_column(String(32), nullable=True)
    guardian_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    guardian_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[LearnerStatusEnum] = mapped_column(
        SAEnum(LearnerStatusEnum, name="learner_status_enum", native_enum=False, values_callable=enum_values),
        default=LearnerStatusEnum.TRIAL,
        nullable=False,
        index=True,
    )


class LearnerProgress(BaseModelMixin, Base):
    """Completed-time totals for one learner on one course."""

    __tablename__ = "learner_progress"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_learner_progress_student_course"),)

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[UUID] = mapped_column(nullable=False)
    hours_completed: Mapped[Decimal] = hours_column(default=Decimal("0"))
    sessions_completed: Mapped[int] = mapped_column(default=0, nullable=False)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
