from __future__ import annotations

import logging
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from fakes import COURSE_ID, FakeProfile, FakeProgress, build_engine, enroll, freeze_time, make_user
from tutordesk.core.enums import (
    AlertLevelEnum,
    ApprovalStatusEnum,
    LearnerStatusEnum,
    PackageStatusEnum,
    RoleEnum,
    SessionStatusEnum,
)
from tutordesk.modules.alerts.engine import (
    AlertSnapshot,
    AlertThresholds,
    generate_learner_alerts,
    generate_teacher_alerts,
)
from tutordesk.shared.exceptions import BusinessRuleException, UnauthorizedException

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


def learner(**values) -> FakeProfile:
    values.setdefault("user_id", uuid4())
    values.setdefault("name", "Ana")
    values.setdefault("birthday", date(1990, 5, 1))
    return FakeProfile(**values)


def package(student_id, **values) -> SimpleNamespace:
    defaults = {
        "id": uuid4(),
        "student_id": student_id,
        "status": PackageStatusEnum.ACTIVE,
        "expires_at": NOW + timedelta(days=90),
        "hours_remaining": Decimal("10"),
        "paused_at": None,
        "pause_reason": None,
    }
    defaults.update(values)
    return SimpleNamespace(**defaults)


def ledger(student_id, uncommitted="0", committed="0", completed="0") -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        student_id=student_id,
        uncommitted_hours=Decimal(uncommitted),
        committed_hours=Decimal(committed),
        completed_hours=Decimal(completed),
    )


def cancelled_session(student_id, cancelled_at) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        student_id=student_id,
        status=SessionStatusEnum.CANCELLED,
        cancelled_at=cancelled_at,
    )


def ids(alerts) -> list[str]:
    return [alert.id for alert in alerts]


def test_feed_is_ordered_by_level_then_newest() -> None:
    ana = learner(status=LearnerStatusEnum.CHURNED)
    expired = package(ana.user_id, status=PackageStatusEnum.EXPIRED, expires_at=NOW - timedelta(days=3))
    expiring_soon = package(ana.user_id, expires_at=NOW + timedelta(days=2))
    expiring_later = package(ana.user_id, expires_at=NOW + timedelta(days=10))
    approval = SimpleNamespace(student_id=ana.user_id, status=ApprovalStatusEnum.PENDING, created_at=NOW)
    snapshot = AlertSnapshot(
        now=NOW,
        learners=(ana,),
        packages=(expiring_soon, expired, expiring_later),
        approvals=(approval,),
    )

    alerts = generate_teacher_alerts(snapshot)

    assert [alert.level for alert in alerts] == [
        AlertLevelEnum.RED,
        AlertLevelEnum.RED,
        AlertLevelEnum.YELLOW,
        AlertLevelEnum.YELLOW,
        AlertLevelEnum.BLUE,
    ]
    assert ids(alerts) == [
        f"red-churned-{ana.user_id}",
        f"red-pkg-expired-{expired.id}",
        f"yellow-pkg-expiring-{expiring_later.id}",
        f"yellow-pkg-expiring-{expiring_soon.id}",
        "blue-pending-approvals",
    ]


def test_same_snapshot_gives_same_feed() -> None:
    ana = learner(status=LearnerStatusEnum.PAUSED, gender=None)
    snapshot = AlertSnapshot(now=NOW, learners=(ana,), packages=(package(ana.user_id, hours_remaining=Decimal("1")),))

    assert generate_teacher_alerts(snapshot) == generate_teacher_alerts(snapshot)


def test_duplicate_entities_produce_one_alert() -> None:
    ana = learner()
    item = package(ana.user_id, status=PackageStatusEnum.EXPIRED)
    snapshot = AlertSnapshot(now=NOW, learners=(ana,), packages=(item, item))

    assert ids(generate_teacher_alerts(snapshot)) == [f"red-pkg-expired-{item.id}"]


def test_expired_package_alert_names_the_learner() -> None:
    ana = learner(name="Ana Lima")
    item = package(ana.user_id, status=PackageStatusEnum.EXPIRED, expires_at=NOW - timedelta(days=1))

    [alert] = generate_teacher_alerts(AlertSnapshot(now=NOW, learners=(ana,), packages=(item,)))

    assert alert.title == "Package Expired"
    assert alert.description == "Ana Lima's package has expired."
    assert alert.timestamp == NOW - timedelta(days=1)
    assert alert.link == f"/packages/students/{ana.user_id}"
    assert alert.student_id == ana.user_id


def test_rule_skips_entities_missing_dates(caplog: pytest.LogCaptureFixture) -> None:
    ana = learner()
    broken = package(ana.user_id, status=PackageStatusEnum.EXPIRED, expires_at=None)
    paused = package(ana.user_id, status=PackageStatusEnum.PAUSED, paused_at=None)
    session = cancelled_session(ana.user_id, None)

    with caplog.at_level(logging.WARNING, logger="tutordesk.modules.alerts.engine"):
        alerts = generate_teacher_alerts(
            AlertSnapshot(now=NOW, learners=(ana,), packages=(broken, paused), sessions=(session,)),
        )

    assert alerts == []
    assert "package_expired" in caplog.text
    assert "package_paused" in caplog.text
    assert "recent_cancellations" in caplog.text


@pytest.mark.parametrize(
    ("expires_in", "expected"),
    [
        (timedelta(hours=5), "0 days"),
        (timedelta(days=1, hours=1), "1 day"),
        (timedelta(days=14, hours=23), "14 days"),
        (timedelta(days=15), None),
        (-timedelta(days=1), None),
    ],
)
def test_expiring_window_counts_whole_days(expires_in: timedelta, expected: str | None) -> None:
    ana = learner()
    item = package(ana.user_id, expires_at=NOW + expires_in)

    alerts = [
        alert
        for alert in generate_teacher_alerts(AlertSnapshot(now=NOW, learners=(ana,), packages=(item,)))
        if alert.title == "Package Expiring Soon"
    ]

    if expected is None:
        assert alerts == []
    else:
        assert alerts[0].description == f"Ana's package expires in {expected}."


def test_expiring_window_follows_thresholds() -> None:
    ana = learner()
    item = package(ana.user_id, expires_at=NOW + timedelta(days=20))
    snapshot = AlertSnapshot(
        now=NOW,
        learners=(ana,),
        packages=(item,),
        thresholds=AlertThresholds(expiring_within_days=30),
    )

    assert ids(generate_teacher_alerts(snapshot)) == [f"yellow-pkg-expiring-{item.id}"]


def test_low_hours_is_strictly_below_threshold() -> None:
    ana = learner()
    low = package(ana.user_id, hours_remaining=Decimal("1.5"))
    enough = package(ana.user_id, hours_remaining=Decimal("2"))
    paused = package(
        ana.user_id,
        status=PackageStatusEnum.PAUSED,
        hours_remaining=Decimal("0.5"),
        paused_at=NOW - timedelta(days=2),
        pause_reason="Exams",
    )

    alerts = generate_teacher_alerts(AlertSnapshot(now=NOW, learners=(ana,), packages=(low, enough, paused)))

    assert ids(alerts) == [f"yellow-low-hours-{low.id}", f"yellow-pkg-paused-{paused.id}"]
    assert alerts[0].description == "Ana has only 1.5h left on the package."
    assert alerts[1].description == "Ana's package is paused. Reason: Exams"


def test_incomplete_profile_requires_guardian_for_minors() -> None:
    adult = learner(name="Ana")
    minor = learner(name="Bia", birthday=date(2012, 1, 1), guardian_name=" ")
    blank = learner(name=None, email=None, birthday=None)

    alerts = {
        alert.student_id: alert
        for alert in generate_teacher_alerts(AlertSnapshot(now=NOW, learners=(adult, minor, blank)))
    }

    assert adult.user_id not in alerts
    assert alerts[minor.user_id].description == "Bia is missing: guardian_name, guardian_email."
    assert alerts[blank.user_id].description == "Unknown is missing: name, email, birthday."


def test_learner_status_rules() -> None:
    churned = learner(status=LearnerStatusEnum.CHURNED)
    paused = learner(status=LearnerStatusEnum.PAUSED)
    trial = learner(status=LearnerStatusEnum.TRIAL)
    booked_trial = learner(status=LearnerStatusEnum.TRIAL)
    session = SimpleNamespace(student_id=booked_trial.user_id, status=SessionStatusEnum.SCHEDULED)

    alerts = generate_teacher_alerts(
        AlertSnapshot(now=NOW, learners=(churned, paused, trial, booked_trial), sessions=(session,)),
    )

    assert set(ids(alerts)) == {
        f"red-churned-{churned.user_id}",
        f"yellow-learner-paused-{paused.user_id}",
        f"blue-new-learner-{trial.user_id}",
    }


def test_pending_approvals_are_aggregated() -> None:
    ana = learner()
    approvals = tuple(
        SimpleNamespace(student_id=ana.user_id, status=ApprovalStatusEnum.PENDING, created_at=NOW - timedelta(hours=h))
        for h in (1, 5)
    )

    [alert] = generate_teacher_alerts(AlertSnapshot(now=NOW, learners=(ana,), approvals=approvals))

    assert alert.description == "2 approval requests awaiting review."
    assert alert.timestamp == NOW - timedelta(hours=1)


def test_recent_cancellations_window() -> None:
    ana = learner()
    sessions = (
        cancelled_session(ana.user_id, NOW - timedelta(days=1)),
        cancelled_session(ana.user_id, NOW - timedelta(days=7, hours=12)),
        cancelled_session(ana.user_id, NOW - timedelta(days=8)),
    )

    [alert] = generate_teacher_alerts(AlertSnapshot(now=NOW, learners=(ana,), sessions=sessions))

    assert alert.id == "blue-recent-cancellations"
    assert alert.description == "2 sessions cancelled in the last 7 days."
    assert alert.timestamp == NOW - timedelta(days=1)


def test_learner_feed_is_narrowed_to_one_learner() -> None:
    ana = learner()
    bia = learner(name="Bia", gender=None)
    snapshot = AlertSnapshot(
        now=NOW,
        learners=(ana, bia),
        packages=(package(bia.user_id, status=PackageStatusEnum.EXPIRED),),
        ledgers=(ledger(ana.user_id, uncommitted="4"),),
        progress=(FakeProgress(student_id=ana.user_id, course_id=COURSE_ID),),
    )

    assert generate_learner_alerts(snapshot, ana.user_id) == []
    assert {alert.level for alert in generate_learner_alerts(snapshot, bia.user_id)} == {
        AlertLevelEnum.RED,
        AlertLevelEnum.YELLOW,
        AlertLevelEnum.BLUE,
    }


def test_learner_without_progress_or_credit_is_nudged() -> None:
    ana = learner()
    spent = ledger(ana.user_id, completed="10")
    snapshot = AlertSnapshot(now=NOW, learners=(ana,), packages=(package(ana.user_id),), ledgers=(spent,))

    assert ids(generate_learner_alerts(snapshot, ana.user_id)) == ["blue-no-credits", "blue-no-progress"]
    assert ids(generate_learner_alerts(AlertSnapshot(now=NOW, learners=(ana,)), ana.user_id)) == [
        "blue-no-credits",
    ]


@pytest.fixture
def engine(monkeypatch: pytest.MonkeyPatch):
    return build_engine(freeze_time(monkeypatch, NOW))


@pytest.mark.asyncio
async def test_teacher_feed_covers_only_own_learners(engine) -> None:
    mine = await enroll(engine, hours=1)
    other = await enroll(engine, hours=1)

    alerts = await engine.alerts_service.teacher_alerts(mine.teacher, teacher_id=other.teacher.id)

    assert {alert.student_id for alert in alerts} == {mine.learner.id}
    assert f"yellow-low-hours-{mine.package.id}" in ids(alerts)

    everyone = await engine.alerts_service.teacher_alerts(make_user(RoleEnum.ADMIN))
    assert {alert.student_id for alert in everyone} == {mine.learner.id, other.learner.id}


@pytest.mark.asyncio
async def test_learners_have_no_teacher_feed(engine) -> None:
    with pytest.raises(UnauthorizedException):
        await engine.alerts_service.teacher_alerts(make_user(RoleEnum.LEARNER))


@pytest.mark.asyncio
async def test_learner_feed_access(engine) -> None:
    enrollment = await enroll(engine, hours=None)

    with pytest.raises(UnauthorizedException):
        await engine.alerts_service.learner_alerts(enrollment.learner, uuid4())
    with pytest.raises(UnauthorizedException):
        await engine.alerts_service.learner_alerts(make_user(RoleEnum.TEACHER), enrollment.learner.id)
    with pytest.raises(BusinessRuleException):
        await engine.alerts_service.learner_alerts(make_user(RoleEnum.ADMIN))

    alerts = await engine.alerts_service.learner_alerts(enrollment.learner)
    assert ids(alerts) == [f"yellow-incomplete-{enrollment.learner.id}", "blue-no-credits"]
    assert ids(await engine.alerts_service.learner_alerts(enrollment.teacher, enrollment.learner.id)) == ids(alerts)


@pytest.mark.asyncio
async def test_daily_summary_keeps_red_and_yellow(engine) -> None:
    enrollment = await enroll(engine, hours=1, returning=False)
    profile = engine.learners.profiles[enrollment.learner.id]
    profile.status = LearnerStatusEnum.TRIAL
    profile.birthday = date(1990, 5, 1)

    alerts = await engine.alerts_service.daily_summary(enrollment.teacher.id)

    assert ids(alerts) == [f"yellow-low-hours-{enrollment.package.id}"]
