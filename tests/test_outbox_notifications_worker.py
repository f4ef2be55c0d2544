from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from tutordesk.core.enums import NotificationStatusEnum, OutboxStatusEnum
from tutordesk.modules.notifications.outbox_worker import NotificationsOutboxWorker


@dataclass
class FakeOutboxEvent:
    id: UUID
    event_type: str
    payload: dict
    status: OutboxStatusEnum = OutboxStatusEnum.PENDING
    retries: int = 0
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    processed_at: datetime | None = None
    error_message: str | None = None


@dataclass
class FakeNotification:
    id: UUID
    user_id: UUID
    channel: str
    title: str
    body: str
    link: str | None = None
    source_event_id: UUID | None = None
    event_type: str | None = None
    status: NotificationStatusEnum = NotificationStatusEnum.PENDING
    sent_at: datetime | None = None


class FakeAuditRepository:
    def __init__(self, events: list[FakeOutboxEvent]) -> None:
        self.events = events

    async def list_pending_outbox(self, limit: int) -> list[FakeOutboxEvent]:
        return [event for event in self.events if event.status == OutboxStatusEnum.PENDING][:limit]

    async def list_failed_outbox(self, limit: int, max_retries: int) -> list[FakeOutboxEvent]:
        return [
            event
            for event in self.events
            if event.status == OutboxStatusEnum.FAILED and event.retries < max_retries
        ][:limit]

    async def mark_outbox_pending(self, event: FakeOutboxEvent) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.PENDING
        event.error_message = None
        event.updated_at = datetime.now(UTC)
        return event

    async def mark_outbox_processed(
        self,
        event: FakeOutboxEvent,
        processed_at: datetime,
    ) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        event.error_message = None
        event.updated_at = processed_at
        return event

    async def mark_outbox_failed(
        self,
        event: FakeOutboxEvent,
        error_message: str,
    ) -> FakeOutboxEvent:
        event.status = OutboxStatusEnum.FAILED
        event.retries += 1
        event.error_message = error_message
        event.updated_at = datetime.now(UTC)
        return event


class FakeNotificationsRepository:
    def __init__(self) -> None:
        self.notifications: list[FakeNotification] = []

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
    ) -> FakeNotification | None:
        if source_event_id is not None and any(
            item.source_event_id == source_event_id and item.user_id == user_id for item in self.notifications
        ):
            return None
        notification = FakeNotification(
            id=uuid4(),
            user_id=user_id,
            channel=channel,
            title=title,
            body=body,
            link=link,
            source_event_id=source_event_id,
            event_type=event_type,
        )
        self.notifications.append(notification)
        return notification

    async def set_status(
        self,
        notification: FakeNotification,
        status: NotificationStatusEnum,
        sent_at: datetime | None,
    ) -> FakeNotification:
        notification.status = status
        notification.sent_at = sent_at
        return notification


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def make_worker(
    events: list[FakeOutboxEvent],
    *,
    now: datetime = NOW,
    base_backoff_seconds: int = 30,
) -> tuple[NotificationsOutboxWorker, FakeAuditRepository, FakeNotificationsRepository]:
    audit_repo = FakeAuditRepository(events)
    notifications_repo = FakeNotificationsRepository()
    worker = NotificationsOutboxWorker(
        audit_repository=audit_repo,  # type: ignore[arg-type]
        notifications_repository=notifications_repo,  # type: ignore[arg-type]
        now_provider=lambda: now,
        base_backoff_seconds=base_backoff_seconds,
    )
    return worker, audit_repo, notifications_repo


@pytest.mark.asyncio
async def test_approval_request_notifies_each_counter_party() -> None:
    teacher_id = uuid4()
    request_id = uuid4()
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="approvals.request.created",
        payload={
            "request_id": str(request_id),
            "type": "cancellation",
            "student_id": str(uuid4()),
            "recipient_ids": [str(teacher_id)],
        },
    )
    worker, _, notifications_repo = make_worker([event])

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 1}
    assert event.status == OutboxStatusEnum.PROCESSED
    notification = notifications_repo.notifications[0]
    assert notification.user_id == teacher_id
    assert notification.title == "Approval requested"
    assert "cancellation" in notification.body
    assert notification.link == f"/approvals/{request_id}"
    assert notification.status == NotificationStatusEnum.SENT


@pytest.mark.asyncio
async def test_resolution_notifies_requester_and_learner_once() -> None:
    student_id = uuid4()
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="approvals.request.resolved",
        payload={
            "request_id": str(uuid4()),
            "type": "new_student_booking",
            "status": "approved",
            "student_id": str(student_id),
            "requested_by_id": str(student_id),
        },
    )
    worker, _, notifications_repo = make_worker([event])

    stats = await worker.run_once()

    assert stats["dispatched"] == 1
    assert notifications_repo.notifications[0].user_id == student_id
    assert notifications_repo.notifications[0].title == "Request approved"


@pytest.mark.asyncio
async def test_reprocessed_event_does_not_notify_twice() -> None:
    student_id = uuid4()
    teacher_id = uuid4()
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="scheduling.session.booked",
        payload={"student_id": str(student_id), "teacher_id": str(teacher_id), "status": "scheduled"},
    )
    worker, _, notifications_repo = make_worker([event])

    first = await worker.run_once()
    event.status = OutboxStatusEnum.PENDING
    second = await worker.run_once()

    assert first["dispatched"] == 2
    assert second == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 0}
    assert [item.user_id for item in notifications_repo.notifications] == [student_id, teacher_id]
    assert {item.source_event_id for item in notifications_repo.notifications} == {event.id}
    assert {item.event_type for item in notifications_repo.notifications} == {"scheduling.session.booked"}


@pytest.mark.asyncio
async def test_session_events_reach_both_parties() -> None:
    student_id = uuid4()
    teacher_id = uuid4()
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="scheduling.session.cancelled",
        payload={
            "session_id": str(uuid4()),
            "student_id": str(student_id),
            "teacher_id": str(teacher_id),
            "status": "cancelled",
            "starts_at": NOW.isoformat(),
        },
    )
    worker, _, notifications_repo = make_worker([event])

    await worker.run_once()

    assert [item.user_id for item in notifications_repo.notifications] == [student_id, teacher_id]
    assert {item.title for item in notifications_repo.notifications} == {"Session cancelled"}


@pytest.mark.asyncio
async def test_daily_summary_goes_to_teacher() -> None:
    teacher_id = uuid4()
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="alerts.daily_summary",
        payload={"teacher_id": str(teacher_id), "red": 1, "yellow": 2, "titles": ["Package Expired"]},
    )
    worker, _, notifications_repo = make_worker([event])

    await worker.run_once()

    notification = notifications_repo.notifications[0]
    assert notification.user_id == teacher_id
    assert notification.body.startswith("1 urgent, 2 needing attention")


@pytest.mark.asyncio
async def test_ledger_events_are_processed_without_dispatch() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="credits.ledger.reserve",
        payload={"ledger_id": str(uuid4()), "hours": "1.00"},
    )
    worker, _, notifications_repo = make_worker([event])

    stats = await worker.run_once()

    assert stats == {"requeued": 0, "processed": 1, "failed": 0, "dispatched": 0}
    assert event.status == OutboxStatusEnum.PROCESSED
    assert notifications_repo.notifications == []


@pytest.mark.asyncio
async def test_worker_requeues_failed_event_after_backoff() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="packages.package.paused",
        payload={"package_id": str(uuid4()), "student_id": str(uuid4()), "status": "paused"},
        status=OutboxStatusEnum.FAILED,
        retries=1,
        occurred_at=NOW - timedelta(minutes=10),
        updated_at=NOW - timedelta(minutes=2),
    )
    worker, _, notifications_repo = make_worker([event], base_backoff_seconds=30)

    stats = await worker.run_once()

    assert stats["requeued"] == 1
    assert stats["processed"] == 1
    assert event.status == OutboxStatusEnum.PROCESSED
    assert notifications_repo.notifications[0].title == "Package paused"


@pytest.mark.asyncio
async def test_failed_event_waits_for_backoff() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="packages.package.expired",
        payload={"student_id": str(uuid4())},
        status=OutboxStatusEnum.FAILED,
        retries=3,
        updated_at=NOW - timedelta(seconds=60),
    )
    worker, _, _ = make_worker([event], base_backoff_seconds=30)

    stats = await worker.run_once()

    assert stats["requeued"] == 0
    assert event.status == OutboxStatusEnum.FAILED


@pytest.mark.asyncio
async def test_worker_marks_event_failed_when_payload_invalid() -> None:
    event = FakeOutboxEvent(
        id=uuid4(),
        event_type="packages.package.created",
        payload={},
    )
    worker, _, notifications_repo = make_worker([event])

    stats = await worker.run_once()

    assert stats["processed"] == 0
    assert stats["failed"] == 1
    assert event.status == OutboxStatusEnum.FAILED
    assert event.retries == 1
    assert notifications_repo.notifications == []
