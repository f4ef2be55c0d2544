"""Outbox consumer that turns domain events into notification intents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from tutordesk.core.enums import NotificationStatusEnum
from tutordesk.modules.audit.models import OutboxEvent
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.notifications.repository import NotificationsRepository
from tutordesk.shared.utils import utc_now

logger = logging.getLogger(__name__)

SESSION_TITLES = {
    "scheduling.session.booked": "Session booked",
    "scheduling.session.cancelled": "Session cancelled",
    "scheduling.session.rescheduled": "Session rescheduled",
    "scheduling.session.completed": "Session completed",
}

PACKAGE_TITLES = {
    "packages.package.created": ("Package created", "Your hour package is active."),
    "packages.package.paused": ("Package paused", "Your hour package is paused."),
    "packages.package.unpaused": ("Package resumed", "Your hour package is active again."),
    "packages.package.expired": ("Package expired", "Your hour package has expired."),
    "packages.package.completed": ("Package completed", "All hours on your package have been used."),
}

APPROVAL_LABELS = {
    "new_student_booking": "new learner booking",
    "pause_request": "package pause",
    "reschedule": "reschedule",
    "cancellation": "cancellation",
}


@dataclass(slots=True)
class NotificationMessage:
    user_id: UUID
    title: str
    body: str
    link: str | None = None
    channel: str = "in_app"


class NotificationsOutboxWorker:
    """Process outbox events and create user notifications."""

    def __init__(
        self,
        audit_repository: AuditRepository,
        notifications_repository: NotificationsRepository,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.audit_repository = audit_repository
        self.notifications_repository = notifications_repository
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "dispatched": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.audit_repository.list_pending_outbox(limit=self.batch_size)
        for event in events:
            try:
                messages = self._build_messages(event)
                for message in messages:
                    notification = await self.notifications_repository.create_notification(
                        user_id=message.user_id,
                        channel=message.channel,
                        title=message.title,
                        body=message.body,
                        link=message.link,
                        source_event_id=event.id,
                        event_type=event.event_type,
                    )
                    if notification is None:
                        logger.info("Event %s already notified user %s", event.id, message.user_id)
                        continue
                    await self.notifications_repository.set_status(
                        notification,
                        NotificationStatusEnum.SENT,
                        self.now_provider(),
                    )
                    stats["dispatched"] += 1

                await self.audit_repository.mark_outbox_processed(event, self.now_provider())
                stats["processed"] += 1
            except (ValueError, KeyError) as exc:
                logger.warning("Outbox event %s (%s) failed: %s", event.id, event.event_type, exc)
                await self.audit_repository.mark_outbox_failed(event, str(exc))
                stats["failed"] += 1
        return stats

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.audit_repository.list_failed_outbox(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self._is_backoff_elapsed(event, now):
                await self.audit_repository.mark_outbox_pending(event)
                requeued += 1
        return requeued

    def _is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        retries = max(event.retries, 1)
        backoff_seconds = min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (retries - 1)),
        )
        last_attempt_at = event.updated_at or event.occurred_at
        return now >= last_attempt_at + timedelta(seconds=backoff_seconds)

    def _build_messages(self, event: OutboxEvent) -> list[NotificationMessage]:
        payload = event.payload or {}
        event_type = event.event_type

        if event_type == "approvals.request.created":
            request_id = payload.get("request_id", "unknown")
            label = APPROVAL_LABELS.get(payload.get("type"), "change")
            recipients = self._unique_recipients(*(UUID(str(item)) for item in payload.get("recipient_ids", [])))
            return [
                NotificationMessage(
                    user_id=user_id,
                    title="Approval requested",
                    body=f"A {label} request is waiting for your decision.",
                    link=f"/approvals/{request_id}",
                )
                for user_id in recipients
            ]

        if event_type == "approvals.request.resolved":
            request_id = payload.get("request_id", "unknown")
            label = APPROVAL_LABELS.get(payload.get("type"), "change")
            status = payload.get("status", "resolved")
            recipients = self._unique_recipients(
                self._optional_uuid(payload, "requested_by_id"),
                self._optional_uuid(payload, "student_id"),
            )
            return [
                NotificationMessage(
                    user_id=user_id,
                    title=f"Request {status}",
                    body=f"The {label} request was {status}.",
                    link=f"/approvals/{request_id}",
                )
                for user_id in recipients
            ]

        if event_type == "alerts.daily_summary":
            teacher_id = self._required_uuid(payload, "teacher_id")
            titles = payload.get("titles", [])
            counts = f"{payload.get('red', 0)} urgent, {payload.get('yellow', 0)} needing attention"
            return [
                NotificationMessage(
                    user_id=teacher_id,
                    title="Daily alert summary",
                    body=f"{counts}. " + "; ".join(titles),
                    link="/alerts/teacher",
                ),
            ]

        if event_type in SESSION_TITLES:
            title = SESSION_TITLES[event_type]
            starts_at = payload.get("starts_at", "unknown")
            recipients = self._unique_recipients(
                self._required_uuid(payload, "student_id"),
                self._optional_uuid(payload, "teacher_id"),
            )
            return [
                NotificationMessage(
                    user_id=user_id,
                    title=title,
                    body=f"Session starting {starts_at} is now {payload.get('status', 'updated')}.",
                    link="/scheduling/sessions/my",
                )
                for user_id in recipients
            ]

        if event_type in PACKAGE_TITLES:
            title, body = PACKAGE_TITLES[event_type]
            student_id = self._required_uuid(payload, "student_id")
            return [
                NotificationMessage(
                    user_id=student_id,
                    title=title,
                    body=body,
                    link=f"/packages/students/{student_id}",
                ),
            ]

        return []

    @staticmethod
    def _required_uuid(payload: dict, key: str) -> UUID:
        value = payload.get(key)
        if value is None:
            raise ValueError(f"Missing required key: {key}")
        return UUID(str(value))

    @staticmethod
    def _optional_uuid(payload: dict, key: str) -> UUID | None:
        value = payload.get(key)
        if value is None:
            return None
        return UUID(str(value))

    @staticmethod
    def _unique_recipients(*recipients: UUID | None) -> list[UUID]:
        unique: list[UUID] = []
        seen: set[UUID] = set()
        for recipient in recipients:
            if recipient is not None and recipient not in seen:
                unique.append(recipient)
                seen.add(recipient)
        return unique
