"""Package state variants and pause-quota rules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from tutordesk.core.enums import PackageStatusEnum
from tutordesk.shared.utils import ensure_utc

DEFAULT_HOURS_PER_PAUSE = 20


@dataclass(frozen=True)
class Active:
    status = PackageStatusEnum.ACTIVE


@dataclass(frozen=True)
class Paused:
    since: datetime
    reason: str | None = None

    status = PackageStatusEnum.PAUSED


@dataclass(frozen=True)
class Expired:
    status = PackageStatusEnum.EXPIRED


@dataclass(frozen=True)
class Completed:
    at: datetime | None = None

    status = PackageStatusEnum.COMPLETED


PackageState = Active | Paused | Expired | Completed

TERMINAL_STATES = (Expired, Completed)


class PausablePackage(Protocol):
    total_hours: Decimal
    pause_count: int

    @property
    def state(self) -> PackageState: ...


def get_max_pauses(total_hours: Decimal | int | float, hours_per_pause: int = DEFAULT_HOURS_PER_PAUSE) -> int:
    """One pause allowance per started block of purchased hours."""
    if total_hours <= 0:
        return 0
    return math.ceil(Decimal(str(total_hours)) / hours_per_pause)


def can_pause(package: PausablePackage, hours_per_pause: int = DEFAULT_HOURS_PER_PAUSE) -> bool:
    return isinstance(package.state, Active) and package.pause_count < get_max_pauses(
        package.total_hours,
        hours_per_pause,
    )


def pauses_remaining(package: PausablePackage, hours_per_pause: int = DEFAULT_HOURS_PER_PAUSE) -> int:
    return max(0, get_max_pauses(package.total_hours, hours_per_pause) - package.pause_count)


def days_between(start: datetime, end: datetime) -> int:
    """Whole calendar days (UTC) from start to end, never negative."""
    return max(0, (ensure_utc(end).date() - ensure_utc(start).date()).days)
