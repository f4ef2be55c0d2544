"""Credit ledger ORM models."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin, hours_column


class CreditLedger(BaseModelMixin, Base):
    """Three-bucket hour accounting for one learner on one course.

    Every purchased hour sits in exactly one of the uncommitted, committed or
    completed buckets; the database rejects any row where the buckets do not sum
    to the total or any bucket goes negative.
    """

    __tablename__ = "credit_ledgers"
    __table_args__ = (
        UniqueConstraint("student_id", "course_id", name="uq_credit_ledgers_student_course"),
        CheckConstraint("total_hours >= 0", name="total_non_negative"),
        CheckConstraint("uncommitted_hours >= 0", name="uncommitted_non_negative"),
        CheckConstraint("committed_hours >= 0", name="committed_non_negative"),
        CheckConstraint("completed_hours >= 0", name="completed_non_negative"),
        CheckConstraint(
            "uncommitted_hours + committed_hours + completed_hours = total_hours",
            name="buckets_sum_to_total",
        ),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    total_hours: Mapped[Decimal] = hours_column(default=Decimal("0"))
    uncommitted_hours: Mapped[Decimal] = hours_column(default=Decimal("0"))
    committed_hours: Mapped[Decimal] = hours_column(default=Decimal("0"))
    completed_hours: Mapped[Decimal] = hours_column(default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
