"""Hour package ORM models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin, enum_values, hours_column
from tutordesk.core.enums import PackageStatusEnum
from tutordesk.modules.packages.lifecycle import Active, Completed, Expired, PackageState, Paused


class HourPackage(BaseModelMixin, Base):
    """Purchased bundle of hours funding a learner's course ledger."""

    __tablename__ = "hour_packages"
    __table_args__ = (
        CheckConstraint(
            "(status = 'paused') = (paused_at IS NOT NULL)",
            name="paused_iff_paused_at",
        ),
        CheckConstraint("hours_remaining >= 0", name="hours_remaining_non_negative"),
        CheckConstraint("hours_remaining <= total_hours", name="hours_remaining_within_total"),
        CheckConstraint("pause_count >= 0", name="pause_count_non_negative"),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    ledger_id: Mapped[UUID] = mapped_column(
        ForeignKey("credit_ledgers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    total_hours: Mapped[Decimal] = hours_column()
    hours_remaining: Mapped[Decimal] = hours_column()
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    external_reference: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    purchase_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[PackageStatusEnum] = mapped_column(
        SAEnum(PackageStatusEnum, name="package_status_enum", native_enum=False, values_callable=enum_values),
        default=PackageStatusEnum.ACTIVE,
        nullable=False,
    )
    pause_count: Mapped[int] = mapped_column(default=0, nullable=False)
    paused_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pause_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_days_paused: Mapped[int] = mapped_column(default=0, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def state(self) -> PackageState:
        match self.status:
            case PackageStatusEnum.PAUSED:
                return Paused(since=self.paused_at, reason=self.pause_reason)
            case PackageStatusEnum.EXPIRED:
                return Expired()
            case PackageStatusEnum.COMPLETED:
                return Completed(at=self.completed_at)
            case _:
                return Active()

    @state.setter
    def state(self, value: PackageState) -> None:
        self.status = value.status
        match value:
            case Paused(since=since, reason=reason):
                self.paused_at = since
                self.pause_reason = reason
            case Completed(at=at):
                self.paused_at = None
                self.pause_reason = None
                self.completed_at = at
            case _:
                self.paused_at = None
                self.pause_reason = None

    @property
    def is_paused(self) -> bool:
        return isinstance(self.state, Paused)
