"""Notifications repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import NotificationStatusEnum
from tutordesk.modules.notifications.models import Notification


class NotificationsRepository:
    """DB operations for notification intents."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_notification(
        self,
        user_id: UUID,
        channel: str,
        title: str,
        body: str,
        link: str | None = None,
        *,
        source_event_id: UUID | None = None,
        event_type: str | None = None,
    ) -> Notification | None:
        """Insert an intent; None when the source event already notified this user."""
        stmt = (
            insert(Notification)
            .values(
                user_id=user_id,
                source_event_id=source_event_id,
                event_type=event_type,
                channel=channel,
                title=title,
                body=body,
                link=link,
            )
            .on_conflict_do_nothing(index_elements=["source_event_id", "user_id"])
            .returning(Notification)
        )
        return await self.session.scalar(stmt)

    async def list_notifications_for_user(
        self,
        user_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[Notification], int]:
        base_stmt: Select[tuple[Notification]] = select(Notification).where(Notification.user_id == user_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def set_status(
        self,
        notification: Notification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
    ) -> Notification:
        notification.status = status
        notification.sent_at = sent_at
        await self.session.flush()
        return notification
