from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from fakes import COURSE_ID, FakeLearnersRepository, FakeLessonsRepository, FakeProfile
from tutordesk.core.enums import SessionStatusEnum
from tutordesk.modules.learners.profile import calculate_age, incomplete_fields
from tutordesk.modules.learners.service import LearnersService

TODAY = date(2026, 10, 19)


@pytest.mark.parametrize(
    ("birthday", "expected"),
    [
        (date(2008, 10, 19), 18),
        (date(2008, 10, 20), 17),
        (date(2000, 2, 29), 26),
        (date(2026, 1, 1), 0),
    ],
)
def test_calculate_age_counts_full_years(birthday: date, expected: int) -> None:
    assert calculate_age(birthday, TODAY) == expected


def test_complete_adult_profile_has_nothing_missing() -> None:
    profile = FakeProfile(user_id=uuid4(), birthday=date(1995, 3, 2))

    assert incomplete_fields(profile, TODAY) == []


def test_whitespace_counts_as_missing() -> None:
    profile = FakeProfile(user_id=uuid4(), name="  ", gender="", birthday=date(1995, 3, 2))

    assert incomplete_fields(profile, TODAY) == ["name", "gender"]


def test_minor_needs_guardian_until_eighteenth_birthday() -> None:
    minor = FakeProfile(user_id=uuid4(), birthday=date(2008, 10, 20))
    adult = FakeProfile(user_id=uuid4(), birthday=date(2008, 10, 19))

    assert incomplete_fields(minor, TODAY) == ["guardian_name", "guardian_email"]
    assert incomplete_fields(adult, TODAY) == []

    minor.guardian_name = "Carla"
    minor.guardian_email = "carla@example.com"
    assert incomplete_fields(minor, TODAY) == []


def test_unknown_birthday_does_not_ask_for_guardian() -> None:
    profile = FakeProfile(user_id=uuid4(), birthday=None)

    assert incomplete_fields(profile, TODAY) == ["birthday"]


@pytest.mark.asyncio
async def test_learner_is_new_until_first_completed_session() -> None:
    learners = FakeLearnersRepository()
    lessons = FakeLessonsRepository()
    service = LearnersService(learners, lessons)  # type: ignore[arg-type]
    student_id = uuid4()

    await lessons.create_session(student_id=student_id, teacher_id=uuid4(), course_id=COURSE_ID)
    await lessons.create_session(
        student_id=student_id,
        teacher_id=uuid4(),
        course_id=COURSE_ID,
        status=SessionStatusEnum.CANCELLED,
    )
    assert await service.is_new_learner(student_id)

    await lessons.create_session(
        student_id=student_id,
        teacher_id=uuid4(),
        course_id=COURSE_ID,
        status=SessionStatusEnum.COMPLETED,
    )
    assert not await service.is_new_learner(student_id)


@pytest.mark.asyncio
async def test_progress_accumulates_per_course() -> None:
    learners = FakeLearnersRepository()
    service = LearnersService(learners, FakeLessonsRepository())  # type: ignore[arg-type]
    student_id = uuid4()
    teacher_id = uuid4()
    learners.add_profile(student_id, teacher_id)
    at = datetime(2026, 10, 19, 10, 0, tzinfo=UTC)

    await service.record_progress(student_id, COURSE_ID, Decimal("1"), at)
    progress = await service.record_progress(student_id, COURSE_ID, Decimal("1.5"), at)

    assert progress.sessions_completed == 2
    assert progress.hours_completed == Decimal("2.5")
    assert progress.last_activity_at == at
    assert await service.teacher_of(student_id) == teacher_id
    assert await service.teacher_of(uuid4()) is None
