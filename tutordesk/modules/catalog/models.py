"""Catalog ORM models."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin, hours_column


class CatalogSession(BaseModelMixin, Base):
    """Curriculum session metadata, maintained by the content tooling."""

    __tablename__ = "catalog_sessions"

    course_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    unit_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    estimated_hours: Mapped[Decimal] = hours_column()
