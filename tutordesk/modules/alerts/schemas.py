"""Alert feed schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tutordesk.core.enums import AlertLevelEnum


class AlertRead(BaseModel):
    """One derived alert."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    level: AlertLevelEnum
    title: str
    description: str
    timestamp: datetime
    link: str | None = None
    student_id: UUID | None = None
