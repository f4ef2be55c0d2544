"""Alert feed derivation.

Every rule is a generator over a read-only ``AlertSnapshot``. Rules never look at
the wall clock: time comes from ``snapshot.now`` or from the entity itself, so the
same snapshot always yields the same alerts in the same order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from tutordesk.core.enums import (
    ApprovalStatusEnum,
    LearnerStatusEnum,
    PackageStatusEnum,
    SessionStatusEnum,
)
from tutordesk.core.enums import AlertLevelEnum as Level
from tutordesk.modules.learners.profile import incomplete_fields
from tutordesk.shared.utils import ensure_utc

logger = logging.getLogger(__name__)

LEVEL_RANK = {Level.RED: 0, Level.YELLOW: 1, Level.BLUE: 2}


@dataclass(frozen=True)
class Alert:
    id: str
    level: Level
    title: str
    description: str
    timestamp: datetime
    link: str | None = None
    student_id: UUID | None = None


@dataclass(frozen=True)
class AlertThresholds:
    expiring_within_days: int = 14
    low_hours: Decimal = Decimal("2")
    recent_cancellation_days: int = 7


@dataclass(frozen=True)
class AlertSnapshot:
    """Point-in-time view of everything the rules read.

    Entities are any objects exposing the ORM attribute names (learner profiles,
    hour packages, credit ledgers, session instances, approval requests, progress).
    """

    now: datetime
    learners: tuple[Any, ...] = ()
    packages: tuple[Any, ...] = ()
    ledgers: tuple[Any, ...] = ()
    sessions: tuple[Any, ...] = ()
    approvals: tuple[Any, ...] = ()
    progress: tuple[Any, ...] = ()
    thresholds: AlertThresholds = field(default_factory=AlertThresholds)

    def learner_name(self, student_id: UUID) -> str:
        for learner in self.learners:
            if learner.user_id == student_id:
                return learner.name or "Unknown"
        return "Unknown"

    def for_learner(self, student_id: UUID) -> AlertSnapshot:
        """Narrow the snapshot to one learner's own entities."""
        return replace(
            self,
            learners=tuple(item for item in self.learners if item.user_id == student_id),
            packages=tuple(item for item in self.packages if item.student_id == student_id),
            ledgers=tuple(item for item in self.ledgers if item.student_id == student_id),
            sessions=tuple(item for item in self.sessions if item.student_id == student_id),
            approvals=tuple(item for item in self.approvals if item.student_id == student_id),
            progress=tuple(item for item in self.progress if item.student_id == student_id),
        )


Rule = Callable[[AlertSnapshot], Iterable[Alert]]


def _whole_days(delta: timedelta) -> int:
    """Full days in delta, truncated toward zero."""
    return int(delta / timedelta(days=1))


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _skip(rule: str, entity: Any, missing: str) -> None:
    logger.warning("Alert rule %s skipped %s: %s is missing", rule, getattr(entity, "id", entity), missing)


def package_expired(snapshot: AlertSnapshot) -> Iterator[Alert]:
    for package in snapshot.packages:
        if package.status != PackageStatusEnum.EXPIRED:
            continue
        if package.expires_at is None:
            _skip("package_expired", package, "expires_at")
            continue
        yield Alert(
            id=f"red-pkg-expired-{package.id}",
            level=Level.RED,
            title="Package Expired",
            description=f"{snapshot.learner_name(package.student_id)}'s package has expired.",
            timestamp=ensure_utc(package.expires_at),
            link=f"/packages/students/{package.student_id}",
            student_id=package.student_id,
        )


def learner_churned(snapshot: AlertSnapshot) -> Iterator[Alert]:
    for learner in snapshot.learners:
        if learner.status == LearnerStatusEnum.CHURNED:
            yield Alert(
                id=f"red-churned-{learner.user_id}",
                level=Level.RED,
                title="Learner Churned",
                description=f"{learner.name or 'Unknown'} has churned. Reach out to re-engage.",
                timestamp=snapshot.now,
                student_id=learner.user_id,
            )


def package_expiring(snapshot: AlertSnapshot) -> Iterator[Alert]:
    window = snapshot.thresholds.expiring_within_days
    for package in snapshot.packages:
        if package.status != PackageStatusEnum.ACTIVE:
            continue
        if package.expires_at is None:
            _skip("package_expiring", package, "expires_at")
            continue
        days_left = _whole_days(ensure_utc(package.expires_at) - snapshot.now)
        if 0 <= days_left <= window:
            yield Alert(
                id=f"yellow-pkg-expiring-{package.id}",
                level=Level.YELLOW,
                title="Package Expiring Soon",
                description=(
                    f"{snapshot.learner_name(package.student_id)}'s package expires in "
                    f"{_plural(days_left, 'day')}."
                ),
                timestamp=ensure_utc(package.expires_at),
                link=f"/packages/students/{package.student_id}",
                student_id=package.student_id,
            )


def low_hours(snapshot: AlertSnapshot) -> Iterator[Alert]:
    threshold = snapshot.thresholds.low_hours
    for package in snapshot.packages:
        if package.status != PackageStatusEnum.ACTIVE:
            continue
        if package.hours_remaining is None:
            _skip("low_hours", package, "hours_remaining")
            continue
        if package.hours_remaining < threshold:
            yield Alert(
                id=f"yellow-low-hours-{package.id}",
                level=Level.YELLOW,
                title="Low Hours Remaining",
                description=(
                    f"{snapshot.learner_name(package.student_id)} has only "
                    f"{package.hours_remaining:.1f}h left on the package."
                ),
                timestamp=snapshot.now,
                link=f"/packages/students/{package.student_id}",
                student_id=package.student_id,
            )


def package_paused(snapshot: AlertSnapshot) -> Iterator[Alert]:
    for package in snapshot.packages:
        if package.status != PackageStatusEnum.PAUSED:
            continue
        if package.paused_at is None:
            _skip("package_paused", package, "paused_at")
            continue
        reason = f" Reason: {package.pause_reason}" if package.pause_reason else ""
        yield Alert(
            id=f"yellow-pkg-paused-{package.id}",
            level=Level.YELLOW,
            title="Package Paused",
            description=f"{snapshot.learner_name(package.student_id)}'s package is paused.{reason}",
            timestamp=ensure_utc(package.paused_at),
            link=f"/packages/students/{package.student_id}",
            student_id=package.student_id,
        )


def incomplete_profile(snapshot: AlertSnapshot) -> Iterator[Alert]:
    today = snapshot.now.date()
    for learner in snapshot.learners:
        missing = incomplete_fields(learner, today)
        if missing:
            yield Alert(
                id=f"yellow-incomplete-{learner.user_id}",
                level=Level.YELLOW,
                title="Incomplete Profile",
                description=f"{learner.name or 'Unknown'} is missing: {', '.join(missing)}.",
                timestamp=snapshot.now,
                student_id=learner.user_id,
            )


def learner_paused(snapshot: AlertSnapshot) -> Iterator[Alert]:
    for learner in snapshot.learners:
        if learner.status == LearnerStatusEnum.PAUSED:
            yield Alert(
                id=f"yellow-learner-paused-{learner.user_id}",
                level=Level.YELLOW,
                title="Learner Paused",
                description=f"{learner.name or 'Unknown'} is currently paused.",
                timestamp=snapshot.now,
                student_id=learner.user_id,
            )


def pending_approvals(snapshot: AlertSnapshot) -> Iterator[Alert]:
    pending = [item for item in snapshot.approvals if item.status == ApprovalStatusEnum.PENDING]
    if not pending:
        return
    stamps = [ensure_utc(item.created_at) for item in pending if item.created_at is not None]
    yield Alert(
        id="blue-pending-approvals",
        level=Level.BLUE,
        title="Pending Approvals",
        description=f"{_plural(len(pending), 'approval request')} awaiting review.",
        timestamp=max(stamps, default=snapshot.now),
        link="/approvals?status=pending",
    )


def recent_cancellations(snapshot: AlertSnapshot) -> Iterator[Alert]:
    window = snapshot.thresholds.recent_cancellation_days
    recent = []
    for item in snapshot.sessions:
        if item.status != SessionStatusEnum.CANCELLED:
            continue
        if item.cancelled_at is None:
            _skip("recent_cancellations", item, "cancelled_at")
            continue
        if _whole_days(snapshot.now - ensure_utc(item.cancelled_at)) <= window:
            recent.append(ensure_utc(item.cancelled_at))
    if recent:
        yield Alert(
            id="blue-recent-cancellations",
            level=Level.BLUE,
            title="Recent Cancellations",
            description=f"{_plural(len(recent), 'session')} cancelled in the last {window} days.",
            timestamp=max(recent),
            link="/scheduling/sessions/my",
        )


def new_learner(snapshot: AlertSnapshot) -> Iterator[Alert]:
    booked = {item.student_id for item in snapshot.sessions}
    for learner in snapshot.learners:
        if learner.status == LearnerStatusEnum.TRIAL and learner.user_id not in booked:
            yield Alert(
                id=f"blue-new-learner-{learner.user_id}",
                level=Level.BLUE,
                title="New Learner",
                description=f"{learner.name or 'Unknown'} has enrolled but has no sessions yet.",
                timestamp=snapshot.now,
                student_id=learner.user_id,
            )


def no_progress(snapshot: AlertSnapshot) -> Iterator[Alert]:
    if snapshot.packages and not snapshot.progress:
        yield Alert(
            id="blue-no-progress",
            level=Level.BLUE,
            title="Get Started",
            description="You have a package but no course progress yet. Book a session to begin.",
            timestamp=snapshot.now,
            link="/scheduling/sessions",
        )


def no_credit(snapshot: AlertSnapshot) -> Iterator[Alert]:
    open_hours = sum(
        (ledger.uncommitted_hours + ledger.committed_hours for ledger in snapshot.ledgers),
        Decimal("0"),
    )
    if not snapshot.ledgers or open_hours == 0:
        yield Alert(
            id="blue-no-credits",
            level=Level.BLUE,
            title="Add Credit to Get Started",
            description="Purchase a package to start booking sessions.",
            timestamp=snapshot.now,
        )


TEACHER_RULES: tuple[Rule, ...] = (
    package_expired,
    learner_churned,
    package_expiring,
    low_hours,
    package_paused,
    incomplete_profile,
    learner_paused,
    pending_approvals,
    recent_cancellations,
    new_learner,
)

LEARNER_RULES: tuple[Rule, ...] = (
    package_expired,
    package_expiring,
    low_hours,
    package_paused,
    incomplete_profile,
    pending_approvals,
    no_progress,
    no_credit,
)


def compose(snapshot: AlertSnapshot, rules: Iterable[Rule]) -> list[Alert]:
    """Run rules, keep the first alert per id, order by level then newest first."""
    unique: dict[str, Alert] = {}
    for rule in rules:
        for alert in rule(snapshot):
            unique.setdefault(alert.id, alert)
    return sorted(
        unique.values(),
        key=lambda alert: (LEVEL_RANK[alert.level], -alert.timestamp.timestamp(), alert.id),
    )


def generate_teacher_alerts(snapshot: AlertSnapshot) -> list[Alert]:
    return compose(snapshot, TEACHER_RULES)


def generate_learner_alerts(snapshot: AlertSnapshot, learner_id: UUID) -> list[Alert]:
    return compose(snapshot.for_learner(learner_id), LEARNER_RULES)
