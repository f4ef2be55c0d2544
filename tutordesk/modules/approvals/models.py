"""Approval request ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Text, text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin, enum_values
from tutordesk.core.enums import ApprovalStatusEnum, ApprovalTypeEnum
from tutordesk.modules.approvals.payloads import ApprovalPayload, load_payload


class ApprovalRequest(BaseModelMixin, Base):
    """Deferred decision waiting for the counter-party."""

    __tablename__ = "approval_requests"
    __table_args__ = (
        Index(
            "uq_approval_requests_pending_session",
            "session_instance_id",
            unique=True,
            postgresql_where=text("status = 'pending' AND session_instance_id IS NOT NULL"),
        ),
        Index(
            "uq_approval_requests_pending_package",
            "package_id",
            unique=True,
            postgresql_where=text("status = 'pending' AND package_id IS NOT NULL"),
        ),
    )

    type: Mapped[ApprovalTypeEnum] = mapped_column(
        SAEnum(ApprovalTypeEnum, name="approval_type_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    status: Mapped[ApprovalStatusEnum] = mapped_column(
        SAEnum(ApprovalStatusEnum, name="approval_status_enum", native_enum=False, values_callable=enum_values),
        default=ApprovalStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    teacher_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    session_instance_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("session_instances.id", ondelete="CASCADE"),
        nullable=True,
    )
    package_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("hour_packages.id", ondelete="CASCADE"),
        nullable=True,
    )
    requested_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    @property
    def details(self) -> ApprovalPayload | None:
        """Typed payload; rejected requests have discarded theirs."""
        if self.payload is None:
            return None
        return load_payload(self.payload)
