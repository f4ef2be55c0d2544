"""Profile completeness rules."""

from __future__ import annotations

from datetime import date
from typing import Protocol

ADULT_AGE = 18


class ProfileFields(Protocol):
    name: str | None
    email: str | None
    birthday: date | None
    gender: str | None
    guardian_name: str | None
    guardian_email: str | None


def calculate_age(birthday: date, today: date) -> int:
    """Full years lived as of today."""
    age = today.year - birthday.year
    if (today.month, today.day) < (birthday.month, birthday.day):
        age -= 1
    return age


def _blank(value: str | None) -> bool:
    return not (value or "").strip()


def incomplete_fields(learner: ProfileFields, today: date) -> list[str]:
    """Names of required profile fields that are still empty.

    Minors additionally need a guardian name and email on file.
    """
    missing = []
    if _blank(learner.name):
        missing.append("name")
    if _blank(learner.email):
        missing.append("email")
    if learner.birthday is None:
        missing.append("birthday")
    if _blank(learner.gender):
        missing.append("gender")

    if learner.birthday is not None and calculate_age(learner.birthday, today) < ADULT_AGE:
        if _blank(learner.guardian_name):
            missing.append("guardian_name")
        if _blank(learner.guardian_email):
            missing.append("guardian_email")
    return missing
