"""Session instance ORM models."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, String, Text, Time
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin, enum_values, hours_column
from tutordesk.core.enums import ACTIVE_SESSION_STATUSES, BillingTypeEnum, SessionStatusEnum


class SessionInstance(BaseModelMixin, Base):
    """One scheduled occurrence of a catalog session between a learner and a teacher.

    ``lesson_date``/``start_time``/``end_time`` are wall-clock values in the
    teacher's zone; ``starts_at``/``ends_at`` are the same slot as UTC instants.
    """

    __tablename__ = "session_instances"
    __table_args__ = (
        CheckConstraint("duration_hours > 0", name="duration_positive"),
        CheckConstraint("ends_at > starts_at", name="ends_after_start"),
        CheckConstraint(
            "billing_type <> 'credit' OR ledger_id IS NOT NULL",
            name="credit_session_has_ledger",
        ),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    teacher_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    unit_id: Mapped[UUID | None] = mapped_column(nullable=True)
    catalog_session_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("catalog_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    lesson_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_hours: Mapped[Decimal] = hours_column()
    billing_type: Mapped[BillingTypeEnum] = mapped_column(
        SAEnum(BillingTypeEnum, name="billing_type_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[SessionStatusEnum] = mapped_column(
        SAEnum(SessionStatusEnum, name="session_status_enum", native_enum=False, values_callable=enum_values),
        default=SessionStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    ledger_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("credit_ledgers.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    package_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("hour_packages.id", ondelete="SET NULL"),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES

    @property
    def holds_credit(self) -> bool:
        """Whether this session currently has hours committed on its ledger."""
        return self.billing_type == BillingTypeEnum.CREDIT and self.is_active
